"""
Runtime configuration for the roster service.

Settings are read from environment variables once, when the application
is built. The database coordinates bundle tells the schema bootstrapper
where the SQLite file lives and where to find the table definitions.
"""

import os
from pydantic import BaseModel, Field

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))

# Defaults for the SQLite store
SQLITE_PATH = "."
SQLITE_FILE = "roster.sqlite"

# Bundled resources
DEFAULT_TABLES_PATH = os.path.join(PACKAGE_DIR, "sql")
DEFAULT_TEMPLATES_PATH = os.path.join(PACKAGE_DIR, "templates")


class DatabaseCoordinates(BaseModel):
    """Where the SQLite store lives and how to bootstrap it."""
    db_path: str = Field(SQLITE_PATH, description="Directory holding the sqlite file")
    db_file: str = Field(SQLITE_FILE, description="The sqlite database filename")
    db_tables_path: str = Field(DEFAULT_TABLES_PATH, description="Directory holding tables.sql; empty skips bootstrap")

    @property
    def database_file(self) -> str:
        return os.path.join(self.db_path, self.db_file)

    @property
    def database_url(self) -> str:
        return "sqlite:///{}".format(self.database_file)


class Settings(BaseModel):
    """Application settings."""
    database: DatabaseCoordinates = Field(default_factory=DatabaseCoordinates)
    templates_path: str = DEFAULT_TEMPLATES_PATH
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ROSTER_* environment variables."""
        return cls(
            database=DatabaseCoordinates(
                db_path=os.getenv("ROSTER_DB_PATH", SQLITE_PATH),
                db_file=os.getenv("ROSTER_DB_FILE", SQLITE_FILE),
                db_tables_path=os.getenv("ROSTER_DB_TABLES_PATH", DEFAULT_TABLES_PATH),
            ),
            templates_path=os.getenv("ROSTER_TEMPLATES_PATH", DEFAULT_TEMPLATES_PATH),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
