import sqlite3
from pathlib import Path

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


@pytest.fixture
def db_path(tmp_path) -> str:
    """Temporary SQLite database with all migrations applied."""
    path = str(tmp_path / "nice_urls.db")
    SQLiteMigrator(path, str(MIGRATIONS_DIR)).run_migrations()
    return path


@pytest.fixture
def course_db(db_path) -> str:
    """
    Migrated database plus the application tables that db conversions read:
    course 42 'intro-to-cs', course module 71 in course 42, user 7 'jsmith'.
    """
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE course (id INTEGER PRIMARY KEY, shortname TEXT NOT NULL);
        CREATE TABLE course_modules (id INTEGER PRIMARY KEY, course INTEGER NOT NULL);
        CREATE TABLE "user" (id INTEGER PRIMARY KEY, username TEXT NOT NULL);

        INSERT INTO course (id, shortname) VALUES (42, 'intro-to-cs'), (43, 'Data-Science');
        INSERT INTO course_modules (id, course) VALUES (71, 42);
        INSERT INTO "user" (id, username) VALUES (7, 'jsmith');
    """)
    conn.commit()
    conn.close()
    return db_path
