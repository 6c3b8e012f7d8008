"""Relational store sink: transactional insert gated by the idempotency oracle."""

import time

from loguru import logger
from sqlalchemy import DateTime, bindparam, text

from app.utils.db_client import DatabaseClient
from app.utils.helpers import now_utc
from domains.file_relay.errors import CommitFailed, OracleError
from domains.file_relay.models import DeliveryOutcome, DeliveryStatus, Record, Sink
from domains.file_relay.oracle import IdempotencyOracle


class DbSink:
    """Inserts each record once into the messages table."""

    sink = Sink.DB

    def __init__(self, db: DatabaseClient, oracle: IdempotencyOracle, messages_table: str):
        self.db = db
        self.oracle = oracle
        self.insert_statement = text(
            f"INSERT INTO {messages_table} VALUES (:id, :message, :created_at)"
        ).bindparams(bindparam("created_at", type_=DateTime(timezone=True)))

    def deliver(self, record: Record) -> DeliveryOutcome:
        """
        Insert record unless the store already holds its id.

        Returns:
            COMMITTED, SKIPPED_DUPLICATE, or FAILED carrying the wrapped error
        """
        started = time.monotonic()

        def outcome(status: DeliveryStatus, error: Exception = None) -> DeliveryOutcome:
            return DeliveryOutcome(self.sink, status, error, time.monotonic() - started)

        try:
            if self.oracle.exists_in_db(record.id):
                logger.info(f"DB already holds id={record.id}, skipping insert")
                return outcome(DeliveryStatus.SKIPPED_DUPLICATE)
        except OracleError as e:
            logger.error(f"DB existence check failed for id={record.id}: {e}")
            return outcome(DeliveryStatus.FAILED, e)

        logger.info(f"Inserting id={record.id} into DB...")
        try:
            with self.db.transaction() as connection:
                connection.execute(
                    self.insert_statement,
                    {"id": record.id, "message": record.message, "created_at": now_utc()},
                )
        except Exception as e:
            # Covers constraint violations, connectivity loss, and rollback-only commits
            error = CommitFailed(f"Insert of id={record.id} rolled back: {e}")
            error.__cause__ = e
            logger.error(f"DB insert failed for id={record.id}: {e}")
            return outcome(DeliveryStatus.FAILED, error)

        logger.success(f"Inserted id={record.id} into DB")
        return outcome(DeliveryStatus.COMMITTED)
