"""
Database connection, schema bootstrap and session management.

Uses SQLAlchemy on top of a single local SQLite file. The bootstrapper
runs the statements in tables.sql (create-if-not-exists) at startup;
request handlers then get one session each through get_db().
"""

import os
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from roster.config import DatabaseCoordinates
from roster.errors import SchemaBootstrapError
from roster.logging_config import get_logger, log_with_context

# Default sql definitions file, looked up inside DatabaseCoordinates.db_tables_path
TABLE_SQL_DEFINITIONS = "tables.sql"

logger = get_logger("db")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def create_db_engine(coords: DatabaseCoordinates) -> Engine:
    """
    Create the engine for the SQLite file named by coords.

    No connection is opened here; the file is created on first connect.
    """
    # Handlers may run on the threadpool, so connections cross threads
    engine = create_engine(
        coords.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def split_statements(content: str) -> list:
    """
    Split a .sql file into individual statements on ';'.

    Chunks that are empty or hold only '--' comment lines are dropped.
    """
    statements = []
    for chunk in content.split(";"):
        lines = [
            line for line in chunk.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        if lines:
            statements.append("\n".join(lines).strip())
    return statements


def bootstrap_schema(engine: Engine, tables_path: str) -> int:
    """
    Execute every statement of tables.sql found in tables_path.

    Each statement commits on its own; when one fails the ones before it
    stay applied. Returns the number of statements executed.

    Raises:
        SchemaBootstrapError: the file could not be read or a statement failed
    """
    definitions_file = os.path.join(tables_path, TABLE_SQL_DEFINITIONS)
    try:
        with open(definitions_file, encoding="utf-8") as fh:
            content = fh.read()
    except OSError as e:
        raise SchemaBootstrapError(
            "Cannot read table definitions {}: {}".format(definitions_file, e)
        ) from e

    executed = 0
    for statement in split_statements(content):
        try:
            with engine.begin() as conn:
                conn.exec_driver_sql(statement)
        except SQLAlchemyError as e:
            log_with_context(logger, "ERROR", "Table definition failed",
                             extra_data={"statement": statement, "error": str(e)})
            raise SchemaBootstrapError(
                "Table definition failed: {}".format(e)
            ) from e
        executed += 1

    return executed


def initialize_db(coords: DatabaseCoordinates) -> Engine:
    """
    Open the SQLite store (creating the file if absent) and bootstrap it.

    Bootstrapping runs only when coords.db_tables_path is set; otherwise
    the store is assumed to have been bootstrapped before.
    """
    engine = create_db_engine(coords)

    # Touch the database so a missing file is created (or a bad path fails) now
    with engine.connect():
        pass

    if coords.db_tables_path:
        executed = bootstrap_schema(engine, coords.db_tables_path)
        log_with_context(logger, "INFO", "Database bootstrapped",
                         context={"database": coords.database_file},
                         extra_data={"statements": executed})
    else:
        log_with_context(logger, "INFO", "Skipping table bootstrap, no definitions path",
                         context={"database": coords.database_file})

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """
    FastAPI dependency that provides a database session.

    Yields a session for the lifetime of the request and closes it
    afterwards, whether the handler returned or raised.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
