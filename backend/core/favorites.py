"""Lightweight database helpers for storing users' favorite cities.

SQLite is used by default; ``mysql://`` URLs need PyMySQL. Every session
opens its own connection, so SQLite must point at a file.
"""
from __future__ import annotations

import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional
from urllib.parse import unquote, urlparse

from snowalert.entities import FavoriteCity
from snowalert.factories import create_favorite_city, utcnow_iso

try:  # Optional import for MySQL support
    import pymysql
    from pymysql.cursors import DictCursor
except ImportError:  # pragma: no cover - pymysql is optional
    pymysql = None  # type: ignore
    DictCursor = None  # type: ignore

PLACEHOLDERS = {"sqlite": "?", "mysql": "%s"}


class FavoritesSession:
    """One connection; SQL is written with ``?`` and adapted to the driver."""

    def __init__(self, connection, driver: str):
        self.connection = connection
        self.driver = driver

    def _run(self, sql: str, params: tuple):
        if self.driver != "sqlite":
            sql = sql.replace("?", PLACEHOLDERS[self.driver])
        cursor = self.connection.cursor()
        cursor.execute(sql, params)
        return cursor

    def first(self, sql: str, params: tuple = ()):
        cursor = self._run(sql, params)
        try:
            return cursor.fetchone()
        finally:
            cursor.close()

    def rows(self, sql: str, params: tuple = ()) -> list:
        cursor = self._run(sql, params)
        try:
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def write(self, sql: str, params: tuple = ()) -> int:
        """Run a statement and return the number of affected rows."""
        cursor = self._run(sql, params)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SessionFactory:
    def __init__(self, url: str, driver: str):
        self.url = url
        self.driver = driver

    def __call__(self) -> FavoritesSession:
        return FavoritesSession(create_connection(self.url, self.driver), self.driver)


_engine_lock = threading.Lock()
_session_factory: Optional[SessionFactory] = None


# ---------------------------------------------------------------------------

def _default_database_url() -> str:
    from django.conf import settings

    return getattr(settings, "FAVORITES_DATABASE_URL", None) or os.getenv(
        "FAVORITES_DATABASE_URL", "sqlite:///./snowalert.db"
    )


def configure_engine(url: Optional[str] = None) -> SessionFactory:
    """Point the module at ``url`` (settings by default) and create the schema."""

    global _session_factory
    database_url = url or _default_database_url()
    factory = SessionFactory(database_url, detect_driver(database_url))
    run_migrations(factory)
    with _engine_lock:
        _session_factory = factory
    return factory


def detect_driver(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme.startswith("mysql"):
        if pymysql is None:
            raise RuntimeError("PyMySQL is required for MySQL connections")
        return "mysql"
    if parsed.scheme.startswith("sqlite") or parsed.scheme == "":
        _sqlite_path(url)
        return "sqlite"
    raise ValueError(f"Unsupported database scheme: {parsed.scheme}")


def _sqlite_path(url: str) -> str:
    # sqlite:///relative.db and sqlite:////absolute.db
    parsed = urlparse(url)
    path = parsed.path[1:] if parsed.scheme and parsed.path.startswith("/") else parsed.path
    path = unquote(path) or parsed.netloc
    if path in ("", ":memory:"):
        raise ValueError("in-memory SQLite is not supported, point FAVORITES_DATABASE_URL at a file")
    return os.path.abspath(path)


def create_connection(url: str, driver: str):
    if driver == "sqlite":
        connection = sqlite3.connect(_sqlite_path(url), check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    if driver == "mysql":
        assert pymysql is not None and DictCursor is not None
        parsed = urlparse(url)
        return pymysql.connect(
            host=parsed.hostname or "localhost",
            user=parsed.username,
            password=parsed.password,
            database=parsed.path.lstrip("/") or None,
            port=parsed.port or 3306,
            cursorclass=DictCursor,
            autocommit=False,
            charset="utf8mb4",
        )

    raise ValueError(f"Unsupported driver: {driver}")


@contextmanager
def session_scope(session_factory: Optional[SessionFactory] = None) -> Iterator[FavoritesSession]:
    """Commit on success, roll back on error, always close."""
    factory = session_factory or _session_factory or configure_engine()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------

def run_migrations(factory: SessionFactory) -> None:
    id_column = "INTEGER PRIMARY KEY AUTOINCREMENT"
    if factory.driver == "mysql":
        id_column = "INTEGER PRIMARY KEY AUTO_INCREMENT"
    with session_scope(factory) as session:
        session.write(
            f"""
            CREATE TABLE IF NOT EXISTS favorites (
                id {id_column},
                open_id VARCHAR(128) NOT NULL,
                city_id VARCHAR(32) NOT NULL,
                city_name VARCHAR(255) NOT NULL,
                latitude REAL NOT NULL DEFAULT 0,
                longitude REAL NOT NULL DEFAULT 0,
                created_at VARCHAR(40) NOT NULL,
                UNIQUE (open_id, city_id)
            )
            """
        )


# ---------------------------------------------------------------------------

def _favorite_from_row(row) -> FavoriteCity:
    return create_favorite_city(
        {
            "_id": row["id"],
            "openId": row["open_id"],
            "cityId": row["city_id"],
            "cityName": row["city_name"],
            "latitude": row["latitude"],
            "longitude": row["longitude"],
            "createdAt": row["created_at"],
        }
    )


def add_favorite(
    session: FavoritesSession,
    *,
    open_id: str,
    city_id: str,
    city_name: str,
    latitude: Any = None,
    longitude: Any = None,
) -> bool:
    """Store a favorite; ``False`` when the user already follows the city."""
    existing = session.first(
        "SELECT id FROM favorites WHERE open_id = ? AND city_id = ?",
        (open_id, city_id),
    )
    if existing:
        return False

    favorite = create_favorite_city(
        {
            "openId": open_id,
            "cityId": city_id,
            "cityName": city_name,
            "latitude": latitude,
            "longitude": longitude,
            "createdAt": utcnow_iso(),
        }
    )
    session.write(
        """
        INSERT INTO favorites (
            open_id, city_id, city_name, latitude, longitude, created_at
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            favorite.open_id,
            favorite.city_id,
            favorite.city_name,
            favorite.latitude,
            favorite.longitude,
            favorite.created_at,
        ),
    )
    return True


def remove_favorite(session: FavoritesSession, *, open_id: str, city_id: str) -> bool:
    """Delete a favorite; ``False`` when there was nothing to delete."""
    removed = session.write(
        "DELETE FROM favorites WHERE open_id = ? AND city_id = ?",
        (open_id, city_id),
    )
    return removed > 0


def list_favorites(session: FavoritesSession, open_id: str) -> List[FavoriteCity]:
    """Favorites of ``open_id``, most recently added first."""
    rows = session.rows(
        "SELECT * FROM favorites WHERE open_id = ? ORDER BY created_at DESC, id DESC",
        (open_id,),
    )
    return [_favorite_from_row(row) for row in rows]


def count_favorites(session: FavoritesSession) -> int:
    row = session.first("SELECT COUNT(*) AS cnt FROM favorites")
    if isinstance(row, dict):
        return int(row["cnt"])
    return int(row[0])
