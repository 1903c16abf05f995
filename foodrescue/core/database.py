"""
Database connection and schema management.
A single DuckDB connection guarded by a re-entrant lock; all multi-row
writes go through transaction().
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import duckdb

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# Full table definitions.
# Only immutable columns are indexed: DuckDB applies updates to indexed
# columns as delete+insert, which conflicts inside one transaction.
SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS users (
  uid TEXT PRIMARY KEY,
  email TEXT UNIQUE NOT NULL,
  password_hash TEXT NOT NULL,
  name TEXT NOT NULL,
  role TEXT CHECK(role IN ('master_admin','org_admin','restaurant','volunteer')) NOT NULL,
  status TEXT CHECK(status IN ('pending_onboarding','active','suspended')) NOT NULL,
  profile_id TEXT,
  organization_id TEXT,
  organization_name TEXT,
  address TEXT,
  onboarding_json JSON,
  created_by TEXT,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now(),
  onboarded_at TIMESTAMP,
  suspended_at TIMESTAMP,
  suspended_by TEXT,
  password_changed_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS organizations (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  admin_id TEXT,
  created_by TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS food_offers (
  id TEXT PRIMARY KEY,
  restaurant_id TEXT NOT NULL,
  restaurant_name TEXT,
  restaurant_address TEXT,
  title TEXT NOT NULL,
  description TEXT,
  quantity DOUBLE NOT NULL,
  expiration_time TIMESTAMP,
  food_type TEXT,
  dietary_info JSON,
  status TEXT CHECK(status IN ('open','claimed','confirmed','completed','cancelled','expired')) NOT NULL,
  claimed_by TEXT,
  claimed_by_name TEXT,
  claimed_at TIMESTAMP,
  pickup_id TEXT,
  confirmed_at TIMESTAMP,
  completed_at TIMESTAMP,
  cancelled_at TIMESTAMP,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_offers_restaurant ON food_offers(restaurant_id);

CREATE TABLE IF NOT EXISTS pickups (
  id TEXT PRIMARY KEY,
  food_offer_id TEXT NOT NULL,
  volunteer_id TEXT NOT NULL,
  volunteer_user_id TEXT,
  volunteer_name TEXT,
  volunteer_organization TEXT,
  restaurant_id TEXT NOT NULL,
  status TEXT CHECK(status IN ('pending','confirmed','completed','cancelled','rejected')) NOT NULL,
  created_at TIMESTAMP DEFAULT now(),
  confirmed_at TIMESTAMP,
  completed_at TIMESTAMP,
  completed_by TEXT,
  cancelled_at TIMESTAMP,
  cancelled_by TEXT,
  cancel_reason TEXT,
  rejected_at TIMESTAMP,
  rejection_reason TEXT
);

CREATE INDEX IF NOT EXISTS idx_pickups_offer ON pickups(food_offer_id);

CREATE SEQUENCE IF NOT EXISTS messages_seq;
CREATE TABLE IF NOT EXISTS messages (
  id TEXT PRIMARY KEY,
  seq BIGINT DEFAULT nextval('messages_seq'),
  pickup_id TEXT NOT NULL,
  sender_id TEXT NOT NULL,
  sender_role TEXT,
  sender_name TEXT,
  type TEXT CHECK(type IN ('text','system')) NOT NULL,
  content TEXT NOT NULL,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_messages_pickup ON messages(pickup_id);

CREATE TABLE IF NOT EXISTS volunteer_availability (
  volunteer_id TEXT PRIMARY KEY,
  user_uid TEXT,
  name TEXT,
  available BOOLEAN DEFAULT FALSE,
  location JSON,
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  actor_uid TEXT,
  action TEXT,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);
"""


def _path_from_url(db_url: str) -> str:
    if db_url.startswith("duckdb://"):
        return db_url[len("duckdb://"):] or MEMORY_DB
    return db_url


class DatabaseManager:
    """Owns the DuckDB connection and wraps every access to it"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or _path_from_url(settings.database_url)

    def configure(self, db_path: str) -> None:
        """Point the manager at another database, dropping the current connection."""
        with self._lock:
            self.close()
            self.db_path = db_path

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Return the connection, opening it and creating the schema on first use"""
        with self._lock:
            if self._connection is None:
                if self.db_path != MEMORY_DB:
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        try:
            try:
                self._connection.execute("INSTALL json")
                self._connection.execute("LOAD json")
            except duckdb.Error:
                logger.debug("json extension unavailable, JSON columns stored as text")
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """Open the database and make sure all tables exist"""
        self.get_connection()
        logger.info("Database ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Run a block atomically.

        The lock serialises transactions inside this process, so check-then-write
        sequences (e.g. claiming an open offer) cannot interleave. Application
        errors raised in the block roll back and propagate unchanged.
        """
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN TRANSACTION")
            try:
                yield conn
            except BaseApplicationError:
                conn.execute("ROLLBACK")
                raise
            except duckdb.TransactionException as e:
                conn.execute("ROLLBACK")
                raise ConcurrencyError("The resource was modified concurrently, please retry") from e
            except duckdb.Error as e:
                conn.execute("ROLLBACK")
                raise DatabaseError(f"Database operation failed: {e}") from e
            except Exception:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    @contextmanager
    def reading(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """Hold the connection for a sequence of reads"""
        with self._lock:
            yield self.connection

    @staticmethod
    def fetch_all(conn, query: str, params: Optional[list] = None) -> List[Dict[str, Any]]:
        """Execute a query and return rows as dicts keyed by column name"""
        try:
            cursor = conn.execute(query, params or [])
            columns = [d[0] for d in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}") from e

    @classmethod
    def fetch_one(cls, conn, query: str, params: Optional[list] = None) -> Optional[Dict[str, Any]]:
        rows = cls.fetch_all(conn, query, params)
        return rows[0] if rows else None

    def execute_query(self, query: str, params: Optional[list] = None) -> List[Dict[str, Any]]:
        with self.reading() as conn:
            return self.fetch_all(conn, query, params)

    def execute_one(self, query: str, params: Optional[list] = None) -> Optional[Dict[str, Any]]:
        with self.reading() as conn:
            return self.fetch_one(conn, query, params)

    def ping(self) -> bool:
        with self.reading() as conn:
            conn.execute("SELECT 1").fetchone()
        return True


# Global database manager
db_manager = DatabaseManager()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in TIMESTAMP columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def log_action(conn, actor_uid: Optional[str], action: str, detail: Optional[Dict[str, Any]] = None):
    """Append an audit row; runs on the caller's connection so it joins any open transaction"""
    conn.execute(
        "INSERT INTO logs(actor_uid, action, detail_json) VALUES (?, ?, ?)",
        [actor_uid, action, json.dumps(detail or {}, default=str)]
    )
