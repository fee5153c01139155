"""
Storage Backend Module

Provides an abstract document store interface and implementations for
in-memory (testing), SQLite (persistence) and PostgreSQL. Each record is a
JSON document stored under a string key; nested lists such as an account's
transactions live inside the document.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Any, Union
from datetime import datetime, timezone
import sqlite3
import json
import threading
import uuid
from dataclasses import dataclass, asdict
from pathlib import Path

from .errors import DuplicateRecordError


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        # Convert datetime objects to ISO strings
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        data = dict(data)
        # Convert ISO strings back to datetime objects
        if 'created_at' in data and isinstance(data['created_at'], str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if 'updated_at' in data and isinstance(data['updated_at'], str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])

        return cls(**data)


def generate_record_id() -> str:
    """Internal identifier assigned to a document on insert"""
    return uuid.uuid4().hex


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def insert(self, table: str, key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new document under ``key``.

        Assigns the internal ``id`` field and returns the stored document.
        Raises DuplicateRecordError if ``key`` is already taken.
        """
        pass

    @abstractmethod
    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        """Save (insert or replace) a document"""
        pass

    @abstractmethod
    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        """Load a document from storage"""
        pass

    @abstractmethod
    def delete(self, table: str, key: str) -> bool:
        """Delete a document, returning whether it existed"""
        pass

    @abstractmethod
    def exists(self, table: str, key: str) -> bool:
        """Check if a document exists"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def insert(self, table: str, key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new document into memory"""
        with self._lock:
            self._ensure_table(table)
            if key in self._data[table]:
                raise DuplicateRecordError(f"{table}/{key} already exists")
            document = json.loads(json.dumps(data, default=str))
            document['id'] = generate_record_id()
            self._data[table][key] = document
            return json.loads(json.dumps(document))

    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        """Save a document to memory"""
        with self._lock:
            self._ensure_table(table)
            # Deep copy to prevent external mutation
            self._data[table][key] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        """Load a document from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(key)
            if record:
                # Deep copy to prevent external mutation
                return json.loads(json.dumps(record))
            return None

    def delete(self, table: str, key: str) -> bool:
        """Delete a document from memory"""
        with self._lock:
            self._ensure_table(table)
            if key in self._data[table]:
                del self._data[table][key]
                return True
            return False

    def exists(self, table: str, key: str) -> bool:
        """Check if a document exists"""
        with self._lock:
            self._ensure_table(table)
            return key in self._data[table]

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _execute(self, sql: str, params: tuple = (), fetch: bool = False):
        """
        Run one statement and commit, rolling back if it fails.

        Returns the first row when ``fetch`` is set, otherwise the row count.
        """
        with self._lock:
            try:
                cursor = self._connection.execute(sql, params)
                result = cursor.fetchone() if fetch else cursor.rowcount
                self._connection.commit()
                return result
            except Exception:
                self._connection.rollback()
                raise

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        self._execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

    def insert(self, table: str, key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new document into SQLite"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            document = json.loads(json.dumps(data, default=str))
            document['id'] = generate_record_id()

            try:
                self._execute(f"""
                    INSERT INTO {table} (id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                """, (key, json.dumps(document), now, now))
            except sqlite3.IntegrityError as e:
                raise DuplicateRecordError(f"{table}/{key} already exists") from e
            return document

    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        """Save a document to SQLite"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)

            # Use INSERT OR REPLACE to handle updates
            self._execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (key, data_json, key, now, now))

    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        """Load a document from SQLite"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (key,), fetch=True)
            if row:
                return json.loads(row['data'])
            return None

    def delete(self, table: str, key: str) -> bool:
        """Delete a document from SQLite"""
        with self._lock:
            self._ensure_table(table)
            deleted = self._execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (key,))
            return deleted > 0

    def exists(self, table: str, key: str) -> bool:
        """Check if a document exists"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (key,), fetch=True)
            return row is not None

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(StorageInterface):
    """PostgreSQL storage backend keeping each document in a JSONB column"""

    def __init__(self, connection_string: str):
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self._connection = None
        self._lock = threading.RLock()
        self._connect()

    def _connect(self) -> None:
        """Establish database connection"""
        with self._lock:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor
            )

    def _execute(self, sql: str, params: tuple = (), fetch: bool = False):
        """
        Run one statement and commit.

        A failed statement aborts the connection's transaction, so it is rolled
        back before the error propagates and the connection stays usable.
        Returns the first row when ``fetch`` is set, otherwise the row count.
        """
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql, params)
                result = cursor.fetchone() if fetch else cursor.rowcount
                self._connection.commit()
                return result
            except Exception:
                self._connection.rollback()
                raise
            finally:
                cursor.close()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        self._execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data JSONB NOT NULL,
                created_at TIMESTAMP DEFAULT NOW(),
                updated_at TIMESTAMP DEFAULT NOW()
            )
        """)

    def insert(self, table: str, key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new document, refusing to overwrite an existing key"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc)
            document = json.loads(json.dumps(data, default=str))
            document['id'] = generate_record_id()

            inserted = self._execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (id) DO NOTHING
            """, (key, json.dumps(document), now, now))

            if not inserted:
                raise DuplicateRecordError(f"{table}/{key} already exists")
            return document

    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        """Save a document to PostgreSQL using UPSERT"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc)
            data_json = json.dumps(data, default=str)

            self._execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    data = EXCLUDED.data,
                    updated_at = EXCLUDED.updated_at
            """, (key, data_json, now, now))

    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        """Load a document from PostgreSQL"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT data FROM {table} WHERE id = %s
            """, (key,), fetch=True)
            if row:
                return dict(row['data'])
            return None

    def delete(self, table: str, key: str) -> bool:
        """Delete a document from PostgreSQL"""
        with self._lock:
            self._ensure_table(table)
            deleted = self._execute(f"""
                DELETE FROM {table} WHERE id = %s
            """, (key,))
            return deleted > 0

    def exists(self, table: str, key: str) -> bool:
        """Check if a document exists"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT 1 FROM {table} WHERE id = %s LIMIT 1
            """, (key,), fetch=True)
            return row is not None

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a database URL.

    Supported schemes: ``memory://``, ``sqlite:///path/to.db`` (``sqlite://``
    alone opens an in-memory SQLite database) and ``postgresql://``.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()

    if database_url.startswith("sqlite://"):
        db_path = database_url[len("sqlite:///"):] if database_url.startswith("sqlite:///") else ""
        return SQLiteStorage(db_path or ":memory:")

    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url)

    raise ValueError(f"Unsupported database URL: {database_url}")
