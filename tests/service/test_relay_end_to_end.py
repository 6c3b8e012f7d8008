"""
Service-level tests for the file relay.

Large-span tests: real SQLite store, real archive directory, real source
directory. Each test tells one story about a record's journey and asserts on
observable state (rows, files, quarantine) rather than internals.
"""

import time

import pytest

from domains.file_relay.models import DeliveryStatus, Sink
from domains.file_relay.pipeline import PROCESSED, QUARANTINED


def test_end_to_end_success(pipeline, write_source, archive_dir, row_count):
    path = write_source("7.json", {"id": 7, "message": "ok"})

    report = pipeline.process_file(path)

    assert report.action == PROCESSED
    assert report.result.outcome_for(Sink.DB).status is DeliveryStatus.COMMITTED
    assert report.result.outcome_for(Sink.FILE).status is DeliveryStatus.COMMITTED
    assert row_count("7") == 1
    assert (archive_dir / "7.txt").read_text(encoding="utf-8") == "ok"
    assert not path.exists()


def test_idempotent_redelivery(pipeline, write_source, archive_dir, row_count):
    pipeline.process_file(write_source("a.json", {"id": "r1", "message": "once"}))

    report = pipeline.process_file(write_source("a.json", {"id": "r1", "message": "once"}))

    assert report.action == PROCESSED
    assert [o.status for o in report.result.outcomes] == [
        DeliveryStatus.SKIPPED_DUPLICATE,
        DeliveryStatus.SKIPPED_DUPLICATE,
    ]
    assert row_count("r1") == 1
    assert [p.name for p in archive_dir.iterdir()] == ["r1.txt"]


def test_partial_failure_quarantines_source(
    pipeline, write_source, source_dir, archive_dir, fail_db_inserts, row_count
):
    path = write_source("42.json", {"id": 42, "message": "hello"})

    report = pipeline.process_file(path)

    assert report.action == QUARANTINED
    assert report.result.db.status is DeliveryStatus.FAILED
    assert report.result.file.status is DeliveryStatus.COMMITTED
    # Archive write is independent of the DB outcome
    assert (archive_dir / "42.txt").read_text(encoding="utf-8") == "hello"
    assert row_count("42") == 0
    assert not path.exists()
    assert (source_dir / ".failed" / "42.json").exists()


def test_retry_converges_after_partial_failure(
    pipeline, write_source, source_dir, archive_dir, fail_db_inserts, row_count
):
    pipeline.process_file(write_source("42.json", {"id": 42, "message": "hello"}))
    fail_db_inserts()  # heal the store

    # Operator replays the quarantined file
    (source_dir / ".failed" / "42.json").rename(source_dir / "42.json")
    report = pipeline.process_file(source_dir / "42.json")

    assert report.action == PROCESSED
    assert report.result.db.status is DeliveryStatus.COMMITTED
    assert report.result.file.status is DeliveryStatus.SKIPPED_DUPLICATE
    assert row_count("42") == 1
    assert (archive_dir / "42.txt").read_text(encoding="utf-8") == "hello"


def test_decode_failure_never_reaches_sinks(pipeline, write_source, source_dir, archive_dir, db):
    path = write_source("junk.json", b"\x00\x01 not a record")

    report = pipeline.process_file(path)

    assert report.action == QUARANTINED
    assert report.result is None
    assert list(archive_dir.iterdir()) == []
    assert db.execute_scalar("SELECT COUNT(*) FROM messages") == 0
    assert (source_dir / ".failed" / "junk.json").exists()


def test_watcher_picks_up_new_files(pipeline, source_dir, archive_dir, row_count):
    pytest.importorskip("watchdog")

    pipeline.start()
    try:
        staged = source_dir.parent / "staged.json"
        staged.write_text('{"id": "live", "message": "from watcher"}', encoding="utf-8")
        staged.rename(source_dir / "live.json")

        deadline = time.monotonic() + 10
        while time.monotonic() < deadline and (source_dir / "live.json").exists():
            time.sleep(0.05)
    finally:
        pipeline.stop()

    assert not (source_dir / "live.json").exists()
    assert (archive_dir / "live.txt").read_text(encoding="utf-8") == "from watcher"
    assert row_count("live") == 1
