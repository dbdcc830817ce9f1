"""Key/value storages backing the TTL cache."""

import sqlite3
from pathlib import Path

from roomfinder.config import CACHE_DB_NAME
from roomfinder.core.database import schema


class MemoryStorage:
    """Process-local storage. Lives as long as the object."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class SqliteStorage:
    """Storage in the cache database, shared by everything using the same file."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        schema.migrate_schema(conn)

    @classmethod
    def open(cls, data_dir: Path, *, db_name: str = CACHE_DB_NAME) -> "SqliteStorage":
        data_dir.mkdir(parents=True, exist_ok=True)
        return cls(sqlite3.connect(str(data_dir / db_name)))

    def get_item(self, key: str) -> str | None:
        return schema.get_item(self.conn, key)

    def set_item(self, key: str, value: str) -> None:
        schema.set_item(self.conn, key, value)

    def close(self) -> None:
        self.conn.close()
