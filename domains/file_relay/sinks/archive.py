"""Processed-file archive sink: fail-if-exists write gated by the idempotency oracle."""

import time

from loguru import logger

from domains.file_relay.errors import ArchiveWriteFailed, OracleError, WriteConflict
from domains.file_relay.models import DeliveryOutcome, DeliveryStatus, Record, Sink
from domains.file_relay.oracle import IdempotencyOracle


class FileSink:
    """Writes each record's message to <archive_dir>/<id>.<ext> exactly once."""

    sink = Sink.FILE

    def __init__(self, oracle: IdempotencyOracle):
        self.oracle = oracle

    def write_exclusive(self, record: Record):
        """
        Write the archive file, refusing to overwrite.

        Raises:
            WriteConflict: destination already exists
            ArchiveWriteFailed: any other I/O failure
        """
        path = self.oracle.archive_path(record.id)
        created = False

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveWriteFailed(f"Archive directory unusable: {path.parent}: {e}") from e

        try:
            with open(path, "x", encoding="utf-8") as f:
                created = True
                f.write(record.message)
        except FileExistsError as e:
            raise WriteConflict(f"Archive file already exists: {path}") from e
        except OSError as e:
            if created:
                # Never leave a truncated file behind; it would read as "already archived"
                path.unlink(missing_ok=True)
            raise ArchiveWriteFailed(f"Could not write {path}: {e}") from e

    def deliver(self, record: Record) -> DeliveryOutcome:
        """
        Archive record unless its file already exists.

        Returns:
            COMMITTED, SKIPPED_DUPLICATE, or FAILED carrying the wrapped error
        """
        started = time.monotonic()

        def outcome(status: DeliveryStatus, error: Exception = None) -> DeliveryOutcome:
            return DeliveryOutcome(self.sink, status, error, time.monotonic() - started)

        try:
            if self.oracle.exists_in_file_archive(record.id):
                logger.info(f"Archive already holds id={record.id}, skipping write")
                return outcome(DeliveryStatus.SKIPPED_DUPLICATE)
        except OracleError as e:
            logger.error(f"Archive existence check failed for id={record.id}: {e}")
            return outcome(DeliveryStatus.FAILED, e)

        logger.info(f"Writing archive file for id={record.id}...")
        try:
            self.write_exclusive(record)
        except WriteConflict:
            logger.info(f"Lost archive write race for id={record.id}; file already present")
            return outcome(DeliveryStatus.SKIPPED_DUPLICATE)
        except ArchiveWriteFailed as e:
            logger.error(f"Archive write failed for id={record.id}: {e}")
            return outcome(DeliveryStatus.FAILED, e)

        logger.success(f"Wrote archive file for id={record.id}")
        return outcome(DeliveryStatus.COMMITTED)
