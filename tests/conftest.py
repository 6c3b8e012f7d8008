import json
import sys
from pathlib import Path

import pytest

# Add project root to path to allow absolute imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.config import Settings
from app.utils.db_client import DatabaseClient
from domains.file_relay.dispatcher import Dispatcher
from domains.file_relay.oracle import IdempotencyOracle
from domains.file_relay.pipeline import IngestionPipeline
from domains.file_relay.sinks import DbSink, FileSink

MESSAGES_TABLE = "messages"


@pytest.fixture
def source_dir(tmp_path) -> Path:
    path = tmp_path / "inbox"
    path.mkdir()
    return path


@pytest.fixture
def archive_dir(tmp_path) -> Path:
    path = tmp_path / "processed"
    path.mkdir()
    return path


@pytest.fixture
def db(tmp_path) -> DatabaseClient:
    """File-backed SQLite store with the messages table created."""
    client = DatabaseClient(
        f"sqlite:///{tmp_path / 'relay.db'}",
        connect_args={"check_same_thread": False},
    )
    client.connect()
    client.ensure_messages_table(MESSAGES_TABLE)
    yield client
    client.close()


@pytest.fixture
def settings(tmp_path, source_dir, archive_dir) -> Settings:
    return Settings(
        source_dir=source_dir,
        archive_dir=archive_dir,
        database_url=f"sqlite:///{tmp_path / 'relay.db'}",
        messages_table=MESSAGES_TABLE,
        settle_seconds=0,
        branch_timeout=5,
        start_watcher_with_api=False,
        _env_file=None,
    )


@pytest.fixture
def oracle(db, archive_dir) -> IdempotencyOracle:
    return IdempotencyOracle(db, MESSAGES_TABLE, archive_dir)


@pytest.fixture
def db_sink(db, oracle) -> DbSink:
    return DbSink(db, oracle, MESSAGES_TABLE)


@pytest.fixture
def file_sink(oracle) -> FileSink:
    return FileSink(oracle)


@pytest.fixture
def dispatcher(db_sink, file_sink) -> Dispatcher:
    dispatcher = Dispatcher(db_sink, file_sink, branch_timeout=5)
    yield dispatcher
    dispatcher.close()


@pytest.fixture
def pipeline(source_dir, dispatcher) -> IngestionPipeline:
    return IngestionPipeline(source_dir, dispatcher, settle_seconds=0)


@pytest.fixture
def write_source(source_dir):
    """Drop a file into the source directory; dicts are JSON-encoded."""

    def _write(name: str, payload) -> Path:
        path = source_dir / name
        if isinstance(payload, (dict, list)):
            path.write_text(json.dumps(payload), encoding="utf-8")
        elif isinstance(payload, bytes):
            path.write_bytes(payload)
        else:
            path.write_text(payload, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def fail_db_inserts(db):
    """Install a trigger that aborts every insert; call the result to remove it."""
    db.execute_write(
        f"""
        CREATE TRIGGER fail_inserts BEFORE INSERT ON {MESSAGES_TABLE}
        BEGIN
            SELECT RAISE(ABORT, 'forced insert failure');
        END
        """
    )

    def _heal():
        db.execute_write("DROP TRIGGER IF EXISTS fail_inserts")

    return _heal


@pytest.fixture
def row_count(db):
    """Rows stored for a record id."""

    def _count(record_id: str) -> int:
        return db.execute_scalar(f"SELECT COUNT(*) FROM {MESSAGES_TABLE} WHERE id = :id", {"id": record_id})

    return _count
