"""
Relational store client built on SQLAlchemy.

Provides:
- Lazy engine construction
- Transaction scopes with REQUIRED propagation
- Parameterized write/scalar helpers
- Messages table bootstrap
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional, Union
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.sql.elements import TextClause
from loguru import logger

from app.utils.config import get_settings


class RollbackOnlyError(RuntimeError):
    """Outer transaction scope exited cleanly after a nested scope failed."""


class _Scope:
    """Ambient transaction state shared by every scope joined to it."""

    def __init__(self, connection: Connection):
        self.connection = connection
        self.rollback_only = False


class DatabaseClient:
    """SQLAlchemy database client with REQUIRED transaction propagation."""

    def __init__(self, url: str = None, **engine_options: Any):
        """Initialize database client."""
        settings = get_settings()
        self.url = url or settings.database_url
        self.engine_options = engine_options

        self._engine: Optional[Engine] = None
        self._ambient: ContextVar[Optional[_Scope]] = ContextVar(
            f"db_scope_{id(self)}", default=None
        )

    def connect(self):
        """Create the engine and verify connectivity."""
        if self._engine is None:
            logger.info(f"Connecting to database at {self.safe_url}...")
            self._engine = create_engine(self.url, **self.engine_options)
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            logger.success("Connected to database successfully")

    def close(self):
        """Dispose of the engine and its pooled connections."""
        if self._engine:
            logger.info("Closing database connection...")
            self._engine.dispose()
            self._engine = None

    @property
    def engine(self) -> Engine:
        """Get engine, connecting if necessary."""
        if self._engine is None:
            self.connect()
        return self._engine

    @property
    def safe_url(self) -> str:
        """Database URL with the password masked."""
        return make_url(self.url).render_as_string(hide_password=True)

    @property
    def in_transaction(self) -> bool:
        """True when the current context holds an open transaction scope."""
        return self._ambient.get() is not None

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Open a transaction scope with REQUIRED propagation.

        Joins the ambient transaction when the current context already has
        one open; otherwise begins a new one that commits on clean exit and
        rolls back on error. A failure inside a joined scope marks the whole
        transaction rollback-only.
        """
        scope = self._ambient.get()
        if scope is not None:
            try:
                yield scope.connection
            except BaseException:
                scope.rollback_only = True
                raise
            return

        with self.engine.connect() as connection:
            scope = _Scope(connection)
            token = self._ambient.set(scope)
            trans = connection.begin()
            try:
                yield connection
            except BaseException:
                trans.rollback()
                raise
            else:
                if scope.rollback_only:
                    trans.rollback()
                    raise RollbackOnlyError("Transaction was marked rollback-only by a nested scope")
                trans.commit()
            finally:
                self._ambient.reset(token)

    def execute_write(self, query: Union[str, TextClause], parameters: Dict[str, Any] = None) -> int:
        """Execute write statement in a transaction scope; returns affected rows."""
        statement = text(query) if isinstance(query, str) else query
        with self.transaction() as connection:
            result = connection.execute(statement, parameters or {})
            return result.rowcount

    def execute_scalar(self, query: str, parameters: Dict[str, Any] = None) -> Any:
        """Execute query and return the first column of the first row."""
        with self.transaction() as connection:
            return connection.execute(text(query), parameters or {}).scalar()

    def ping(self) -> bool:
        """Check store connectivity."""
        return self.execute_scalar("SELECT 1") == 1

    def ensure_messages_table(self, table: str):
        """Create the messages table if it does not exist."""
        query = f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id VARCHAR(255) PRIMARY KEY,
            message TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL
        )
        """
        self.execute_write(query)
        logger.info(f"Messages table ready: {table}")


# Global client instance
_client: Optional[DatabaseClient] = None


def get_db_client() -> DatabaseClient:
    """Get global database client instance."""
    global _client
    if _client is None:
        _client = DatabaseClient()
        _client.connect()
    return _client


def close_db_client():
    """Close global database client."""
    global _client
    if _client:
        _client.close()
        _client = None
