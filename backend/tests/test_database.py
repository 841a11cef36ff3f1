import os

import pytest
from sqlalchemy import inspect

from roster.config import DatabaseCoordinates, DEFAULT_TABLES_PATH
from roster.database import (
    initialize_db, bootstrap_schema, split_statements, TABLE_SQL_DEFINITIONS
)
from roster.errors import SchemaBootstrapError


def table_names(engine):
    return inspect(engine).get_table_names()


class TestSplitStatements:
    def test_drops_blank_and_comment_chunks(self):
        content = "-- header\nCREATE TABLE a (x INTEGER);\n\n-- only a comment\n;\nCREATE TABLE b (y TEXT);\n"
        assert split_statements(content) == [
            "CREATE TABLE a (x INTEGER)",
            "CREATE TABLE b (y TEXT)",
        ]


class TestInitializeDb:
    """Opening and bootstrapping the sqlite store"""

    def test_creates_file_and_tables(self, coords):
        assert not os.path.exists(coords.database_file)
        engine = initialize_db(coords)
        try:
            assert os.path.exists(coords.database_file)
            assert "Student" in table_names(engine)
        finally:
            engine.dispose()

    def test_bootstrap_is_idempotent(self, coords):
        initialize_db(coords).dispose()
        engine = initialize_db(coords)
        try:
            assert bootstrap_schema(engine, DEFAULT_TABLES_PATH) == 3
            assert "Student" in table_names(engine)
        finally:
            engine.dispose()

    def test_default_coordinates_bootstrap_bundled_tables(self, tmp_path):
        coords = DatabaseCoordinates(db_path=str(tmp_path))
        assert coords.db_tables_path == DEFAULT_TABLES_PATH
        engine = initialize_db(coords)
        try:
            assert "Student" in table_names(engine)
        finally:
            engine.dispose()

    def test_empty_tables_path_skips_bootstrap(self, tmp_path):
        coords = DatabaseCoordinates(db_path=str(tmp_path), db_file="bare.sqlite", db_tables_path="")
        engine = initialize_db(coords)
        try:
            assert os.path.exists(coords.database_file)
            assert table_names(engine) == []
        finally:
            engine.dispose()

    def test_missing_definitions_file(self, tmp_path):
        coords = DatabaseCoordinates(
            db_path=str(tmp_path), db_file="x.sqlite",
            db_tables_path=str(tmp_path / "nowhere"),
        )
        with pytest.raises(SchemaBootstrapError):
            initialize_db(coords)

    def test_failing_statement_keeps_earlier_ones(self, tmp_path):
        sql_dir = tmp_path / "sql"
        sql_dir.mkdir()
        (sql_dir / TABLE_SQL_DEFINITIONS).write_text(
            "CREATE TABLE IF NOT EXISTS first (x INTEGER);\n"
            "CREATE TABLE broken (;\n"
            "CREATE TABLE IF NOT EXISTS never (y INTEGER);\n"
        )
        coords = DatabaseCoordinates(
            db_path=str(tmp_path), db_file="partial.sqlite", db_tables_path=str(sql_dir)
        )
        with pytest.raises(SchemaBootstrapError):
            initialize_db(coords)

        engine = initialize_db(coords.model_copy(update={"db_tables_path": ""}))
        try:
            names = table_names(engine)
            assert "first" in names
            assert "never" not in names
        finally:
            engine.dispose()
