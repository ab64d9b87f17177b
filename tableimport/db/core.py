import enum
import logging
import os
import re
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote_plus
from typing import Any, Optional, Sequence

import pandas as pd
import psycopg2
import pymysql

from psycopg2.extensions import connection as Psycopg2Connection
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from tableimport.db.dialects import MYSQL, POSTGRES, SQLITE, Dialect


def get_logger(
    name: str,
    level: int = logging.INFO,
    log_format: Optional[str] = None,
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    # imports usually run on a worker thread, so the thread name is logged too
    log_format = log_format or (
        "%(asctime)s - %(name)s [%(threadName)s] - %(levelname)s - %(message)s"
    )
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(handler)
    return logger


_ENV_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

DEFAULT_PORTS = {"postgres": 5432, "mysql": 3306}


@dataclass
class DatabaseCredentials:
    """
    Connection details for an import destination.

    SQLite destinations only need ``database``, which is the file path.
    ``host`` and ``password`` are left out of the repr so credentials can be
    logged safely.
    """

    database: str
    driver: str = "postgresql"
    host: str = field(default="", repr=False)
    port: Optional[int] = None
    username: str = ""
    password: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if self.port is None and not self.is_file_based:
            self.port = next(
                (p for d, p in DEFAULT_PORTS.items() if self.driver.lower().startswith(d)),
                None,
            )

    @property
    def is_file_based(self) -> bool:
        return self.driver.lower().startswith("sqlite")

    @classmethod
    def from_env_file(
        cls,
        env_path: str | Path,
        prefix: str = "TABLEIMPORT_",
        driver: str = "postgresql",
    ) -> "DatabaseCredentials":
        """
        Read ``{prefix}DATABASE``, ``{prefix}HOST``, ``{prefix}PORT``,
        ``{prefix}USER``, ``{prefix}PASSWORD`` and ``{prefix}DRIVER`` from a
        .env file, falling back to the process environment.

        Server drivers require everything except PORT and DRIVER; SQLite only
        requires DATABASE.
        """
        file_vars = cls._parse_env_file(env_path)

        def lookup(name: str) -> Optional[str]:
            key = f"{prefix}{name}"
            return file_vars.get(key) or os.environ.get(key)

        driver = lookup("DRIVER") or driver
        required = ["DATABASE"]
        if not driver.lower().startswith("sqlite"):
            required += ["HOST", "USER", "PASSWORD"]
        missing = [f"{prefix}{name}" for name in required if not lookup(name)]
        if missing:
            raise ValueError(f"Missing required environment variable: {', '.join(missing)}")

        port = lookup("PORT")
        return cls(
            database=lookup("DATABASE"),
            driver=driver,
            host=lookup("HOST") or "",
            port=int(port) if port else None,
            username=lookup("USER") or "",
            password=lookup("PASSWORD") or "",
        )

    @staticmethod
    def _parse_env_file(env_path: str | Path) -> dict[str, str]:
        path = Path(env_path)
        if not path.exists():
            return {}

        env_vars = {}
        for line in path.read_text().splitlines():
            line = line.strip()
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            key, sep, value = line.partition("=")
            key = key.strip()
            if not sep or not _ENV_KEY.fullmatch(key):
                continue
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
                value = value[1:-1]
            env_vars[key] = value
        return env_vars

    @property
    def connection_string(self) -> str:
        if self.is_file_based:
            return f"sqlite:///{self.database}"
        return (
            f"{self.driver}://{self.username}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    @property
    def redacted_connection_string(self) -> str:
        if self.is_file_based:
            return self.connection_string
        return f"{self.driver}://{self.username}:****@****:{self.port}/{self.database}"


class ExecFlag(enum.Flag):
    NONE = 0
    NO_LOCK = enum.auto()


class DestinationError(Exception):
    """A statement, transaction or connection failed at the destination."""


def connect_retry(*transient: type[Exception]):
    """Retry opening a connection on *transient* driver errors, never a statement."""
    return retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(transient),
        reraise=True,
    )


class PreparedStatement:
    """
    A single SQL text executed repeatedly with different bound values.

    The cursor is opened on first execution and reused until close().
    """

    def __init__(
        self, engine: "BaseEngine", sql: str, flags: ExecFlag = ExecFlag.NONE
    ) -> None:
        self.engine = engine
        self.sql = sql
        self.flags = flags
        self._args: tuple = ()
        self._cursor = None

    def bind(self, values: Sequence[Any]) -> None:
        self._args = tuple(values)

    def execute(self) -> int:
        if self._cursor is None:
            self._cursor = self.engine._open_cursor()
        with self.engine._locked(self.flags):
            return self.engine._execute_atomic(self._cursor, self.sql, self._args)

    def close(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def __enter__(self) -> "PreparedStatement":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class BaseEngine:
    """
    One destination connection plus the transaction state of the importer
    using it.

    Outside begin()/commit() every statement is committed on its own.
    Driver errors are re-raised as DestinationError carrying the driver's
    error text.
    """

    dialect: Dialect
    driver_error: type[Exception] = Exception
    # False where DDL commits the open transaction implicitly
    transactional_ddl = True

    def __init__(self, logger_name: str) -> None:
        self._conn = None
        self._in_transaction = False
        self._write_lock = threading.RLock()
        self.logger = get_logger(logger_name)

    def _connect(self):
        raise NotImplementedError

    def _is_open(self, conn) -> bool:
        return True

    def _begin(self) -> None:
        raise NotImplementedError

    def _commit(self) -> None:
        raise NotImplementedError

    def _rollback(self) -> None:
        raise NotImplementedError

    def list_existing_columns(self, table: str, schema: str | None = None) -> list[str]:
        """Column names of *table* in ordinal order; empty if it doesn't exist."""
        raise NotImplementedError

    @property
    def connection(self):
        if self._conn is None or not self._is_open(self._conn):
            if self._in_transaction:
                raise DestinationError("Connection lost during transaction")
            self._conn = self._connect()
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def close(self) -> None:
        if self._conn is not None and self._is_open(self._conn):
            self._conn.close()
        self._conn = None
        self._in_transaction = False

    def _open_cursor(self):
        try:
            return self.connection.cursor()
        except self.driver_error as e:
            raise DestinationError(f"Could not connect: {str(e).strip()}") from e

    @contextmanager
    def cursor(self):
        cur = self._open_cursor()
        try:
            yield cur
        finally:
            cur.close()

    @contextmanager
    def _locked(self, flags: ExecFlag):
        if ExecFlag.NO_LOCK in flags:
            yield
            return
        with self._write_lock:
            yield

    @staticmethod
    def _run(cur, sql: str, params) -> None:
        if params is None:
            cur.execute(sql)
        else:
            cur.execute(sql, params)

    def _execute_atomic(self, cur, sql: str, params) -> int:
        try:
            self._run(cur, sql, params)
        except self.driver_error as e:
            self.logger.debug("Statement failed with error %s", e)
            raise DestinationError(str(e).strip()) from e
        return cur.rowcount

    def query(
        self,
        sql: str,
        params: dict[str, Any] | tuple | None = None,
    ) -> pd.DataFrame:
        """Execute a SELECT (or PRAGMA) and return results as a DataFrame."""
        try:
            with self.cursor() as cur:
                self._run(cur, sql, params)
                if cur.description is None:
                    return pd.DataFrame()
                columns = [desc[0] for desc in cur.description]
                return pd.DataFrame(list(cur.fetchall()), columns=columns)
        except self.driver_error as e:
            self.logger.error("Query failed with error %s", e)
            raise DestinationError(str(e).strip()) from e

    def execute(
        self,
        sql: str,
        params: dict[str, Any] | tuple | None = None,
        flags: ExecFlag = ExecFlag.NONE,
    ) -> int:
        """
        Execute a DDL/DML statement (no result set) and return its row count.

        Unless flags contains NO_LOCK the statement holds the engine's write
        lock while it runs.
        """
        with self._locked(flags), self.cursor() as cur:
            return self._execute_atomic(cur, sql, params)

    def prepare(self, sql: str, flags: ExecFlag = ExecFlag.NONE) -> PreparedStatement:
        return PreparedStatement(self, sql, flags)

    def begin(self) -> None:
        if self._in_transaction:
            raise DestinationError("A transaction is already open")
        try:
            self._begin()
        except self.driver_error as e:
            raise DestinationError(str(e).strip()) from e
        self._in_transaction = True

    def commit(self) -> None:
        try:
            self._commit()
        except self.driver_error as e:
            raise DestinationError(str(e).strip()) from e
        self._in_transaction = False

    def rollback(self) -> None:
        try:
            self._rollback()
        except self.driver_error as e:
            raise DestinationError(str(e).strip()) from e
        finally:
            self._in_transaction = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class PostgresEngine(BaseEngine):
    dialect = POSTGRES
    driver_error = psycopg2.Error

    def __init__(
        self, creds: DatabaseCredentials, db_name: Optional[str] = None
    ) -> None:
        super().__init__("postgres_engine")
        self.creds = creds
        self.db_name = db_name or creds.database

    @connect_retry(psycopg2.OperationalError, psycopg2.InterfaceError)
    def _connect(self) -> Psycopg2Connection:
        conn = psycopg2.connect(
            host=self.creds.host,
            port=self.creds.port,
            dbname=self.db_name,
            user=self.creds.username,
            password=self.creds.password,
        )
        conn.autocommit = True
        return conn

    def _is_open(self, conn) -> bool:
        return not conn.closed

    def _begin(self) -> None:
        # psycopg2 issues BEGIN implicitly before the next statement
        self.connection.autocommit = False

    def _commit(self) -> None:
        self.connection.commit()
        self.connection.autocommit = True

    def _rollback(self) -> None:
        self.connection.rollback()
        self.connection.autocommit = True

    def _execute_atomic(self, cur, sql: str, params) -> int:
        # A failed statement aborts the whole transaction in PostgreSQL, so
        # each one gets its own savepoint.
        if not self._in_transaction:
            return super()._execute_atomic(cur, sql, params)
        try:
            cur.execute("savepoint tableimport_stmt")
            try:
                self._run(cur, sql, params)
            except psycopg2.Error:
                cur.execute("rollback to savepoint tableimport_stmt")
                raise
            rowcount = cur.rowcount
            cur.execute("release savepoint tableimport_stmt")
        except psycopg2.Error as e:
            self.logger.debug("Statement failed with error %s", e)
            raise DestinationError(str(e).strip()) from e
        return rowcount

    def list_existing_columns(self, table: str, schema: str | None = None) -> list[str]:
        df = self.query(
            """
            select column_name
            from information_schema.columns
            where
                table_schema = coalesce(%(schema)s, current_schema())
                and table_name = %(table)s
            order by ordinal_position
            """,
            {"schema": schema, "table": table},
        )
        if df.empty:
            return []
        return list(df["column_name"])


class MySQLEngine(BaseEngine):
    dialect = MYSQL
    driver_error = pymysql.MySQLError
    transactional_ddl = False

    def __init__(
        self,
        creds: DatabaseCredentials,
        db_name: Optional[str] = None,
    ) -> None:
        super().__init__("mysql_engine")
        self.creds = creds
        self.db_name = db_name or creds.database

    @connect_retry(pymysql.OperationalError, pymysql.InterfaceError)
    def _connect(self) -> pymysql.Connection:
        self.logger.info(
            "Connecting with: host=%s, port=%s, user=%s",
            self.creds.host,
            self.creds.port,
            self.creds.username,
        )
        return pymysql.connect(
            host=self.creds.host,
            port=self.creds.port,
            user=self.creds.username,
            password=self.creds.password,
            database=self.db_name,
            charset="utf8mb4",
            autocommit=True,
        )

    def _is_open(self, conn) -> bool:
        return conn.open

    def _begin(self) -> None:
        # With autocommit off the statements after an implicitly committing
        # CREATE TABLE still run inside a transaction.
        self.connection.autocommit(False)
        self.connection.begin()

    def _commit(self) -> None:
        conn = self.connection
        conn.commit()
        conn.autocommit(True)

    def _rollback(self) -> None:
        conn = self.connection
        try:
            conn.rollback()
        finally:
            conn.autocommit(True)

    def list_existing_columns(self, table: str, schema: str | None = None) -> list[str]:
        df = self.query(
            """
            select column_name as column_name
            from information_schema.columns
            where
                table_schema = coalesce(%(schema)s, database())
                and table_name = %(table)s
            order by ordinal_position
            """,
            {"schema": schema, "table": table},
        )
        if df.empty:
            return []
        return list(df["column_name"])


class SQLiteEngine(BaseEngine):
    dialect = SQLITE
    driver_error = sqlite3.Error

    def __init__(self, path: str | Path = ":memory:") -> None:
        super().__init__("sqlite_engine")
        self.path = str(path)

    def _connect(self) -> sqlite3.Connection:
        # The import runs on a worker thread, not the one that built the engine
        return sqlite3.connect(
            self.path, isolation_level=None, check_same_thread=False
        )

    def _begin(self) -> None:
        self.connection.execute("begin")

    def _commit(self) -> None:
        self.connection.execute("commit")

    def _rollback(self) -> None:
        self.connection.execute("rollback")

    def list_existing_columns(self, table: str, schema: str | None = None) -> list[str]:
        prefix = f"{self.dialect.wrap_if_needed(schema)}." if schema else ""
        df = self.query(f"pragma {prefix}table_info({self.dialect.quote(table)})")
        if df.empty:
            return []
        return list(df["name"])


def create_engine(creds: DatabaseCredentials) -> BaseEngine:
    """Pick the engine class matching ``creds.driver``."""
    driver = creds.driver.lower()
    if driver.startswith("postgres"):
        return PostgresEngine(creds)
    if driver.startswith("mysql"):
        return MySQLEngine(creds)
    if driver.startswith("sqlite"):
        return SQLiteEngine(creds.database)
    raise ValueError(f"Unsupported driver: {creds.driver!r}")

