"""Wiring: builds oracle, sinks, dispatcher and pipeline from settings."""

from typing import Optional

from app.utils.config import Settings, get_settings
from app.utils.db_client import DatabaseClient, get_db_client
from domains.file_relay.dispatcher import Dispatcher
from domains.file_relay.oracle import IdempotencyOracle
from domains.file_relay.pipeline import IngestionPipeline
from domains.file_relay.sinks import DbSink, FileSink


def build_dispatcher(settings: Settings, db: DatabaseClient) -> Dispatcher:
    """Create the oracle, both sinks and the dispatcher over them."""
    oracle = IdempotencyOracle(
        db,
        settings.messages_table,
        settings.archive_dir,
        settings.archive_extension,
    )
    return Dispatcher(
        DbSink(db, oracle, settings.messages_table),
        FileSink(oracle),
        branch_timeout=settings.branch_timeout,
        max_workers=settings.dispatch_workers,
    )


def build_pipeline(settings: Optional[Settings] = None, db: Optional[DatabaseClient] = None) -> IngestionPipeline:
    """Create a fully wired ingestion pipeline."""
    settings = settings or get_settings()
    db = db or get_db_client()

    if settings.create_table_on_start:
        db.ensure_messages_table(settings.messages_table)

    return IngestionPipeline(
        settings.source_dir,
        build_dispatcher(settings, db),
        quarantine_dir_name=settings.quarantine_dir_name,
        done_dir_name=settings.done_dir_name,
        success_action=settings.success_action,
        settle_seconds=settings.settle_seconds,
        ingest_workers=settings.ingest_workers,
    )
