"""
Storage Backend Module

Provides the abstract storage interface and implementations for in-memory
(testing), SQLite (single host persistence) and PostgreSQL (multi-process
deployments). Monetary columns are INTEGER minor units, never floating point.

Correctness under concurrency is enforced by the store itself: unique
constraints for identifiers and in-place ``col = col + delta`` updates for
balances. Callers group multi-statement effects with ``atomic()``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Iterable, Sequence, Tuple
from datetime import datetime, timezone
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager
import copy
import sqlite3
import threading

from .logging_config import get_logger


logger = get_logger("bank_ledger.storage")


class StorageError(Exception):
    """Base class for storage failures"""
    pass


class UniqueConstraintViolation(StorageError):
    """
    Raised when an insert or update collides with a unique constraint.

    ``columns`` names the violated constraint so callers can decide between
    retrying and reporting a conflict without inspecting driver messages.
    """

    def __init__(self, table: str, columns: Tuple[str, ...]):
        self.table = table
        self.columns = tuple(columns)
        super().__init__(f"Unique constraint violated on {table}({', '.join(self.columns)})")


@dataclass(frozen=True)
class TableSchema:
    """Declarative table definition shared by all backends"""
    name: str
    columns: Tuple[Tuple[str, str], ...]  # (column, "TEXT" | "INTEGER")
    unique: Tuple[Tuple[str, ...], ...] = ()
    indexes: Tuple[Tuple[str, ...], ...] = ()

    @property
    def column_names(self) -> Tuple[str, ...]:
        return ("id",) + tuple(name for name, _ in self.columns)

    def constraint_name(self, columns: Tuple[str, ...]) -> str:
        return f"uq_{self.name}_{'_'.join(columns)}"

    def columns_for_constraint(self, constraint_name: str) -> Optional[Tuple[str, ...]]:
        for columns in self.unique:
            if self.constraint_name(columns) == constraint_name:
                return columns
        return None


def utc_now_iso() -> str:
    """Store timestamp format: UTC ISO-8601 with microseconds (sorts lexically)"""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _parse_order_by(order_by: Optional[Sequence[str]]) -> List[Tuple[str, bool]]:
    """Turn ["-created_at", "-id"] into [("created_at", True), ("id", True)]"""
    keys = []
    for key in order_by or ():
        if key.startswith("-"):
            keys.append((key[1:], True))
        else:
            keys.append((key, False))
    return keys


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    def __init__(self):
        self._schemas: Dict[str, TableSchema] = {}

    def _schema(self, table: str) -> TableSchema:
        schema = self._schemas.get(table)
        if schema is None:
            raise StorageError(f"Unknown table: {table}")
        return schema

    def _check_columns(self, table: str, columns: Iterable[str]) -> TableSchema:
        schema = self._schema(table)
        known = schema.column_names
        for column in columns:
            if column not in known:
                raise StorageError(f"Unknown column {table}.{column}")
        return schema

    def _prepare_insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate columns and stamp created_at when the caller left it out"""
        schema = self._check_columns(table, data.keys())
        if "id" in data:
            raise StorageError("Record ids are assigned by the store")
        row = dict(data)
        if "created_at" in schema.column_names and not row.get("created_at"):
            row["created_at"] = utc_now_iso()
        return row

    @abstractmethod
    def ensure_schema(self, tables: Iterable[TableSchema]) -> None:
        """Create tables, unique constraints and indexes if missing"""
        pass

    @abstractmethod
    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record and return its store-assigned id"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record by id"""
        pass

    @abstractmethod
    def find(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Find records matching all filters, optionally ordered ("-col" = descending)"""
        pass

    @abstractmethod
    def increment(self, table: str, record_id: int, column: str, delta: int) -> bool:
        """Atomically apply ``column = column + delta``; False if no row matched"""
        pass

    @abstractmethod
    def update(self, table: str, record_id: int, values: Dict[str, Any]) -> bool:
        """Overwrite columns of one record; False if no row matched"""
        pass

    @abstractmethod
    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete records matching all filters and return how many were removed"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """First record matching filters, or None"""
        rows = self.find(table, filters, order_by=["id"], limit=1)
        return rows[0] if rows else None

    def begin_transaction(self) -> None:
        """Start a unit of work (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current unit of work (default no-op)"""
        pass

    def rollback(self) -> None:
        """Roll back current unit of work (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for a unit of work: everything commits or nothing does"""
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing.

    Mirrors the relational backends: autoincrement ids, unique constraints and
    all-or-nothing ``atomic()`` blocks (snapshot restored on rollback).
    """

    def __init__(self):
        super().__init__()
        self._data: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot = None

    def ensure_schema(self, tables: Iterable[TableSchema]) -> None:
        with self._lock:
            for schema in tables:
                self._schemas[schema.name] = schema
                self._data.setdefault(schema.name, {})
                self._sequences.setdefault(schema.name, 0)

    def _check_unique(self, schema: TableSchema, row: Dict[str, Any], skip_id: Optional[int] = None) -> None:
        for columns in schema.unique:
            values = tuple(row.get(column) for column in columns)
            if any(value is None for value in values):
                continue
            for existing_id, existing in self._data[schema.name].items():
                if existing_id == skip_id:
                    continue
                if tuple(existing.get(column) for column in columns) == values:
                    raise UniqueConstraintViolation(schema.name, columns)

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        with self._lock:
            schema = self._schema(table)
            row = self._prepare_insert(table, data)
            for name, _ in schema.columns:
                row.setdefault(name, None)
            self._check_unique(schema, row)

            self._sequences[table] += 1
            record_id = self._sequences[table]
            row["id"] = record_id
            self._data[table][record_id] = row
            return record_id

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._schema(table)
            record = self._data[table].get(record_id)
            return dict(record) if record else None

    def find(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        keys = _parse_order_by(order_by)
        with self._lock:
            self._check_columns(table, list(filters.keys()) + [key for key, _ in keys])
            results = [
                dict(record) for record in self._data[table].values()
                if all(record.get(key) == value for key, value in filters.items())
            ]

        results.sort(key=lambda record: record["id"])
        # Stable sorts applied from the least significant key upwards
        for key, descending in reversed(keys):
            results.sort(key=lambda record: record[key], reverse=descending)

        if limit is not None:
            results = results[:limit]
        return results

    def increment(self, table: str, record_id: int, column: str, delta: int) -> bool:
        with self._lock:
            self._check_columns(table, [column])
            record = self._data[table].get(record_id)
            if record is None:
                return False
            record[column] = record[column] + delta
            return True

    def update(self, table: str, record_id: int, values: Dict[str, Any]) -> bool:
        with self._lock:
            schema = self._check_columns(table, values.keys())
            record = self._data[table].get(record_id)
            if record is None:
                return False
            candidate = dict(record)
            candidate.update(values)
            self._check_unique(schema, candidate, skip_id=record_id)
            record.update(values)
            return True

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            self._check_columns(table, filters.keys())
            matched = [
                record_id for record_id, record in self._data[table].items()
                if all(record.get(key) == value for key, value in filters.items())
            ]
            for record_id in matched:
                del self._data[table][record_id]
            return len(matched)

    def count(self, table: str) -> int:
        with self._lock:
            self._schema(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._schema(table)
            self._data[table] = {}

    def begin_transaction(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = (copy.deepcopy(self._data), dict(self._sequences))
        self._depth += 1

    def commit(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._snapshot = None
        finally:
            self._lock.release()

    def rollback(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0 and self._snapshot is not None:
                self._data, self._sequences = self._snapshot
                self._snapshot = None
        finally:
            self._lock.release()

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage implementation for persistence.

    One connection guarded by a re-entrant lock; ``atomic()`` holds the lock for
    the whole unit of work and opens it with BEGIN IMMEDIATE so other processes
    sharing the database file are serialized by SQLite's write lock.
    """

    def __init__(self, db_path: Any = ":memory:"):
        super().__init__()
        self.db_path = str(db_path)
        # Autocommit mode; units of work are opened explicitly
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.execute("PRAGMA busy_timeout = 5000")

    def ensure_schema(self, tables: Iterable[TableSchema]) -> None:
        with self._lock:
            for schema in tables:
                column_sql = ",\n".join(
                    f"{name} {sql_type}" for name, sql_type in schema.columns
                )
                self._connection.execute(f"""
                    CREATE TABLE IF NOT EXISTS {schema.name} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        {column_sql}
                    )
                """)
                for columns in schema.unique:
                    self._connection.execute(f"""
                        CREATE UNIQUE INDEX IF NOT EXISTS {schema.constraint_name(columns)}
                        ON {schema.name}({', '.join(columns)})
                    """)
                for columns in schema.indexes:
                    self._connection.execute(f"""
                        CREATE INDEX IF NOT EXISTS idx_{schema.name}_{'_'.join(columns)}
                        ON {schema.name}({', '.join(columns)})
                    """)
                self._schemas[schema.name] = schema

    def _classify(self, table: str, error: sqlite3.IntegrityError) -> StorageError:
        """Map SQLite integrity errors onto storage errors"""
        message = str(error)
        prefix = "UNIQUE constraint failed:"
        if message.startswith(prefix):
            columns = tuple(
                part.strip().split(".")[-1]
                for part in message[len(prefix):].split(",")
            )
            return UniqueConstraintViolation(table, columns)
        return StorageError(message)

    def _execute(self, table: str, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise self._classify(table, e) from e
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _where(filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        if not filters:
            return "", []
        clause = " AND ".join(f"{key} = ?" for key in filters)
        return f"WHERE {clause}", list(filters.values())

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        with self._lock:
            row = self._prepare_insert(table, data)
            columns = list(row.keys())
            placeholders = ", ".join("?" for _ in columns)
            cursor = self._execute(
                table,
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                [row[column] for column in columns]
            )
            return cursor.lastrowid

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._schema(table)
            row = self._execute(table, f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return dict(row) if row else None

    def find(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        keys = _parse_order_by(order_by) or [("id", False)]
        with self._lock:
            self._check_columns(table, list(filters.keys()) + [key for key, _ in keys])
            where, params = self._where(filters)
            ordering = ", ".join(f"{key} {'DESC' if desc else 'ASC'}" for key, desc in keys)
            sql = f"SELECT * FROM {table} {where} ORDER BY {ordering}"
            if limit is not None:
                sql += " LIMIT ?"
                params.append(limit)
            return [dict(row) for row in self._execute(table, sql, params).fetchall()]

    def increment(self, table: str, record_id: int, column: str, delta: int) -> bool:
        with self._lock:
            self._check_columns(table, [column])
            cursor = self._execute(
                table,
                f"UPDATE {table} SET {column} = {column} + ? WHERE id = ?",
                (delta, record_id)
            )
            return cursor.rowcount == 1

    def update(self, table: str, record_id: int, values: Dict[str, Any]) -> bool:
        with self._lock:
            self._check_columns(table, values.keys())
            assignments = ", ".join(f"{key} = ?" for key in values)
            cursor = self._execute(
                table,
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                list(values.values()) + [record_id]
            )
            return cursor.rowcount == 1

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            self._check_columns(table, filters.keys())
            where, params = self._where(filters)
            cursor = self._execute(table, f"DELETE FROM {table} {where}", params)
            return cursor.rowcount

    def count(self, table: str) -> int:
        with self._lock:
            self._schema(table)
            row = self._execute(table, f"SELECT COUNT(*) AS count FROM {table}").fetchone()
            return row["count"]

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._schema(table)
            self._execute(table, f"DELETE FROM {table}")

    def begin_transaction(self) -> None:
        self._lock.acquire()
        try:
            if self._depth == 0:
                self._connection.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._lock.release()
            raise StorageError(str(e)) from e
        self._depth += 1

    def commit(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._connection.execute("COMMIT")
                except sqlite3.Error as e:
                    # A failed COMMIT leaves the transaction open
                    self._abandon_transaction()
                    raise StorageError(f"Commit failed: {e}") from e
        finally:
            self._lock.release()

    def rollback(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.execute("ROLLBACK")
        finally:
            self._lock.release()

    def _abandon_transaction(self) -> None:
        if not self._connection.in_transaction:
            return
        try:
            self._connection.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("Rollback after failed commit also failed")

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(StorageInterface):
    """PostgreSQL storage backend with ACID transaction support"""

    UNIQUE_VIOLATION = "23505"

    def __init__(self, connection_string: str):
        super().__init__()
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install bank-ledger[postgres]")

        self.connection_string = connection_string
        self._connection = None
        self._lock = threading.RLock()
        self._depth = 0
        self._connect()

    def _connect(self) -> None:
        """Establish database connection"""
        with self._lock:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor
            )
            self._connection.autocommit = False  # We handle transactions manually

    def ensure_schema(self, tables: Iterable[TableSchema]) -> None:
        types = {"TEXT": "TEXT", "INTEGER": "BIGINT"}
        with self._lock:
            cursor = self._connection.cursor()
            try:
                for schema in tables:
                    column_sql = ",\n".join(
                        f"{name} {types[sql_type]}" for name, sql_type in schema.columns
                    )
                    cursor.execute(f"""
                        CREATE TABLE IF NOT EXISTS {schema.name} (
                            id BIGSERIAL PRIMARY KEY,
                            {column_sql}
                        )
                    """)
                    for columns in schema.unique:
                        cursor.execute(f"""
                            CREATE UNIQUE INDEX IF NOT EXISTS {schema.constraint_name(columns)}
                            ON {schema.name}({', '.join(columns)})
                        """)
                    for columns in schema.indexes:
                        cursor.execute(f"""
                            CREATE INDEX IF NOT EXISTS idx_{schema.name}_{'_'.join(columns)}
                            ON {schema.name}({', '.join(columns)})
                        """)
                    self._schemas[schema.name] = schema
                self._connection.commit()
            finally:
                cursor.close()

    def _run(self, table: str, sql: str, params: Sequence[Any] = (), fetch: str = "none"):
        """Execute one statement, committing unless inside a unit of work"""
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql, params)
                if fetch == "one":
                    result = cursor.fetchone()
                elif fetch == "all":
                    result = cursor.fetchall()
                else:
                    result = cursor.rowcount
                if self._depth == 0:
                    self._connection.commit()
                return result
            except self.psycopg2.Error as e:
                if self._depth == 0:
                    self._connection.rollback()
                if getattr(e, "pgcode", None) == self.UNIQUE_VIOLATION:
                    constraint = getattr(getattr(e, "diag", None), "constraint_name", None) or ""
                    columns = self._schema(table).columns_for_constraint(constraint) or ()
                    raise UniqueConstraintViolation(table, columns) from e
                raise StorageError(str(e)) from e
            finally:
                cursor.close()

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        row = self._prepare_insert(table, data)
        columns = list(row.keys())
        placeholders = ", ".join("%s" for _ in columns)
        result = self._run(
            table,
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id",
            [row[column] for column in columns],
            fetch="one"
        )
        return result["id"]

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        self._schema(table)
        row = self._run(table, f"SELECT * FROM {table} WHERE id = %s", (record_id,), fetch="one")
        return dict(row) if row else None

    def find(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        keys = _parse_order_by(order_by) or [("id", False)]
        self._check_columns(table, list(filters.keys()) + [key for key, _ in keys])
        params: List[Any] = list(filters.values())
        where = ""
        if filters:
            where = "WHERE " + " AND ".join(f"{key} = %s" for key in filters)
        ordering = ", ".join(f"{key} {'DESC' if desc else 'ASC'}" for key, desc in keys)
        sql = f"SELECT * FROM {table} {where} ORDER BY {ordering}"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        return [dict(row) for row in self._run(table, sql, params, fetch="all")]

    def increment(self, table: str, record_id: int, column: str, delta: int) -> bool:
        self._check_columns(table, [column])
        rowcount = self._run(
            table,
            f"UPDATE {table} SET {column} = {column} + %s WHERE id = %s",
            (delta, record_id)
        )
        return rowcount == 1

    def update(self, table: str, record_id: int, values: Dict[str, Any]) -> bool:
        self._check_columns(table, values.keys())
        assignments = ", ".join(f"{key} = %s" for key in values)
        rowcount = self._run(
            table,
            f"UPDATE {table} SET {assignments} WHERE id = %s",
            list(values.values()) + [record_id]
        )
        return rowcount == 1

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        self._check_columns(table, filters.keys())
        where = ""
        if filters:
            where = "WHERE " + " AND ".join(f"{key} = %s" for key in filters)
        return self._run(table, f"DELETE FROM {table} {where}", list(filters.values()))

    def count(self, table: str) -> int:
        self._schema(table)
        return self._run(table, f"SELECT COUNT(*) AS count FROM {table}", fetch="one")["count"]

    def clear_table(self, table: str) -> None:
        self._schema(table)
        self._run(table, f"DELETE FROM {table}")

    def begin_transaction(self) -> None:
        # PostgreSQL opens the transaction implicitly on the first statement
        self._lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._connection.commit()
                except self.psycopg2.Error as e:
                    self._connection.rollback()
                    raise StorageError(f"Commit failed: {e}") from e
        finally:
            self._lock.release()

    def rollback(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.rollback()
        finally:
            self._lock.release()

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL.

    Supported: ``memory://``, ``sqlite:///relative.db``, ``sqlite:////abs.db``,
    ``sqlite:///:memory:`` and ``postgresql://...``.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        path = database_url[len("sqlite:///"):] or ":memory:"
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return SQLiteStorage(path)
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url)
    raise StorageError(f"Unsupported database URL: {database_url}")
