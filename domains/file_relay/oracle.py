"""
Idempotency oracle.

Answers "is this record already at sink X?" by querying the sink itself on
every call. Nothing is cached: an unanswerable query raises instead of
reporting "absent", since absent would license a duplicate write.
"""

from pathlib import Path

from loguru import logger
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError, SQLAlchemyError

from app.utils.db_client import DatabaseClient
from domains.file_relay.errors import QueryFailed, StoreUnavailable


class IdempotencyOracle:
    """Read-only existence checks against the DB and the archive directory."""

    def __init__(self, db: DatabaseClient, messages_table: str, archive_dir: Path, extension: str = "txt"):
        """
        Initialize oracle.

        Args:
            db: Database client (queries join an ambient transaction if open)
            messages_table: Validated table name
            archive_dir: Directory holding archived records
            extension: Archive file extension, without the dot
        """
        self.db = db
        self.messages_table = messages_table
        self.archive_dir = Path(archive_dir)
        self.extension = extension.lstrip(".")

    def archive_path(self, record_id: str) -> Path:
        """Deterministic archive destination for a record id."""
        return self.archive_dir / f"{record_id}.{self.extension}"

    def exists_in_db(self, record_id: str) -> bool:
        """Return True if a row with this id exists in the messages table."""
        query = f"SELECT COUNT(*) FROM {self.messages_table} WHERE id = :id"

        try:
            count = self.db.execute_scalar(query, {"id": record_id})
        except (OperationalError, DisconnectionError) as e:
            raise StoreUnavailable(f"Database unreachable checking id={record_id}: {e}") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise StoreUnavailable(f"Database connection lost checking id={record_id}: {e}") from e
            raise QueryFailed(f"Existence query failed for id={record_id}: {e}") from e
        except SQLAlchemyError as e:
            raise QueryFailed(f"Existence query failed for id={record_id}: {e}") from e

        exists = (count or 0) > 0
        logger.debug(f"DB record exists for id={record_id}: {exists}")
        return exists

    def exists_in_file_archive(self, record_id: str) -> bool:
        """Return True if the archive file for this id exists."""
        path = self.archive_path(record_id)

        try:
            path.lstat()
            exists = True
        except FileNotFoundError:
            exists = False
        except OSError as e:
            raise StoreUnavailable(f"Archive unreadable checking {path}: {e}") from e

        logger.debug(f"Archive file exists for id={record_id}: {exists}")
        return exists
