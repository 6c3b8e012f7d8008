"""
Ingestion pipeline.

Turns source files into dispatched records and decides each file's fate:
- decode failure or any FAILED branch -> moved to the quarantine directory
- every branch COMMITTED / SKIPPED_DUPLICATE -> deleted (or moved to done)

Files are handled one at a time on the caller's thread unless
``ingest_workers`` > 1. Dispatches sharing a record id are always
serialized so the oracle's check-then-act never races itself.
"""

from __future__ import annotations

import shutil
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from loguru import logger

from app.utils.helpers import should_exclude_path, unique_destination, wait_until_stable
from domains.file_relay.codec import decode_record
from domains.file_relay.dispatcher import Dispatcher
from domains.file_relay.errors import DecodeError, DispatchPartialFailure, RelayError
from domains.file_relay.models import DispatchResult

PROCESSED = "processed"
QUARANTINED = "quarantined"
SKIPPED = "skipped"


@dataclass(frozen=True)
class IngestReport:
    """What happened to one source file."""

    path: Path
    action: str
    record_id: Optional[str] = None
    result: Optional[DispatchResult] = None
    error: Optional[BaseException] = None


class IdentityLocks:
    """Single-flight locks keyed by record id; entries are dropped when idle."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # id -> [lock, holders]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class IngestionPipeline:
    """Decode -> dispatch -> archive-or-quarantine for files in one directory."""

    def __init__(
        self,
        source_dir: Path,
        dispatcher: Dispatcher,
        quarantine_dir_name: str = ".failed",
        done_dir_name: str = ".done",
        success_action: str = "delete",
        settle_seconds: float = 0.2,
        ingest_workers: int = 1,
    ):
        """
        Initialize ingestion pipeline.

        Args:
            source_dir: Directory to ingest files from
            dispatcher: Dispatcher fanning records out to the sinks
            quarantine_dir_name: Subdirectory of source_dir for failed files
            done_dir_name: Subdirectory of source_dir for handled files (move mode)
            success_action: "delete" or "move" for fully handled files
            settle_seconds: Size-stability interval before reading a file
            ingest_workers: >1 processes distinct files concurrently
        """
        if success_action not in ("delete", "move"):
            raise ValueError(f"Unknown success_action: {success_action!r}")

        self.source_dir = Path(source_dir).absolute()
        self.dispatcher = dispatcher
        self.quarantine_dir = self.source_dir / quarantine_dir_name
        self.done_dir = self.source_dir / done_dir_name
        self.success_action = success_action
        self.settle_seconds = settle_seconds

        self._identity_locks = IdentityLocks()
        self._in_flight: set[Path] = set()
        self._in_flight_lock = threading.Lock()
        self._deferred: set[Path] = set()
        self._executor = (
            ThreadPoolExecutor(max_workers=ingest_workers, thread_name_prefix="relay-ingest")
            if ingest_workers > 1
            else None
        )

        self._stats_lock = threading.Lock()
        self.stats: Dict[str, int] = {
            "processed": 0,
            "quarantined": 0,
            "decode_failures": 0,
            "partial_failures": 0,
            "skipped": 0,
        }
        self._observer = None

    # Core ------------------------------------------------------------------------

    def ingest(self, raw: bytes) -> DispatchResult:
        """
        Decode raw file contents and dispatch the record.

        Raises:
            DecodeError: contents are not a valid record; nothing is dispatched
        """
        record = decode_record(raw)
        with self._identity_locks.hold(record.id):
            return self.dispatcher.dispatch(record)

    def process_file(self, path: Path) -> IngestReport:
        """Ingest one source file and archive or quarantine it accordingly."""
        path = Path(path)

        if not wait_until_stable(path, self.settle_seconds):
            if path.exists():
                with self._in_flight_lock:
                    self._deferred.add(path.absolute())
            logger.debug(f"Skipping {path}: vanished or still being written")
            self._count("skipped")
            return IngestReport(path, SKIPPED)

        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"Skipping {path}: already gone")
            self._count("skipped")
            return IngestReport(path, SKIPPED)

        logger.info(f"Ingesting {path.name} ({len(raw)} bytes)")

        try:
            result = self.ingest(raw)
        except DecodeError as e:
            logger.error(f"Decode failed for {path.name}: {e}")
            self._count("decode_failures")
            self._quarantine(path)
            return IngestReport(path, QUARANTINED, error=e)

        try:
            result.raise_for_failure()
        except DispatchPartialFailure as e:
            logger.error(f"{path.name}: {e}; quarantining for retry")
            self._count("partial_failures")
            self._quarantine(path)
            return IngestReport(path, QUARANTINED, result.record_id, result, e)

        self._complete(path)
        self._count("processed")
        return IngestReport(path, PROCESSED, result.record_id, result)

    # Source file handling -------------------------------------------------------------

    def _quarantine(self, path: Path):
        self.quarantine_dir.mkdir(parents=True, exist_ok=True)
        target = unique_destination(self.quarantine_dir, path.name)
        shutil.move(str(path), str(target))
        self._count("quarantined")
        logger.warning(f"Quarantined {path.name} -> {target}")

    def _complete(self, path: Path):
        if self.success_action == "move":
            self.done_dir.mkdir(parents=True, exist_ok=True)
            target = unique_destination(self.done_dir, path.name)
            shutil.move(str(path), str(target))
            logger.debug(f"Moved handled file {path.name} -> {target}")
        else:
            path.unlink(missing_ok=True)
            logger.debug(f"Removed handled file {path.name}")

    def _count(self, key: str):
        with self._stats_lock:
            self.stats[key] += 1

    def snapshot_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)

    # Discovery -------------------------------------------------------------------

    def accepts(self, path: Path) -> bool:
        """True for regular, non-hidden, non-temporary files directly in source_dir."""
        path = Path(path).absolute()
        if path.parent != self.source_dir:
            return False
        if should_exclude_path(path):
            return False
        return path.is_file()

    def submit(self, path: Path) -> Optional[Future]:
        """
        Queue a path for processing unless it is already in flight.

        Runs inline when there is no ingest pool; the returned future is
        None in that case and when the path was ignored.
        """
        path = Path(path).absolute()
        if not self.accepts(path):
            return None

        with self._in_flight_lock:
            if path in self._in_flight:
                logger.debug(f"{path.name} already in flight")
                return None
            self._in_flight.add(path)

        if self._executor is None:
            self._run_tracked(path)
            return None
        return self._executor.submit(self._run_tracked, path)

    def _run_tracked(self, path: Path) -> Optional[IngestReport]:
        try:
            return self.process_file(path)
        except (OSError, RelayError) as e:
            # Moving the source file itself failed; leave it for the next scan
            logger.error(f"Failed to handle {path}: {e}")
            return None
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(path)

    def retry_deferred(self) -> int:
        """Resubmit files skipped earlier because they were not yet settled."""
        with self._in_flight_lock:
            deferred, self._deferred = self._deferred, set()

        futures = [self.submit(path) for path in sorted(deferred)]
        for future in futures:
            if future is not None:
                future.result()
        return len(deferred)

    def scan_existing(self) -> int:
        """Process files already present in source_dir; returns files submitted."""
        if not self.source_dir.is_dir():
            logger.warning(f"Source directory missing: {self.source_dir}")
            return 0

        candidates = sorted(p for p in self.source_dir.iterdir() if self.accepts(p))
        futures = [self.submit(path) for path in candidates]
        for future in futures:
            if future is not None:
                future.result()

        if candidates:
            logger.info(f"Scan handled {len(candidates)} file(s)")
        return len(candidates)

    # Lifecycle ---------------------------------------------------------------------

    def start(self):
        """Start the directory observer and process files already waiting."""
        from domains.file_relay.watchers.filesystem import create_observer

        if self._observer is not None:
            return

        self.source_dir.mkdir(parents=True, exist_ok=True)
        self._observer = create_observer(self)
        self._observer.start()
        logger.success(f"Watching {self.source_dir}")
        self.scan_existing()

    def stop(self):
        """Stop the observer and drain in-flight work."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Directory observer stopped")
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def run(self, stop_event: Optional[threading.Event] = None, poll: float = 1.0):
        """Watch continuously until stop_event is set or KeyboardInterrupt."""
        stop_event = stop_event or threading.Event()
        logger.info("Starting ingestion pipeline...")

        self.start()
        try:
            while not stop_event.wait(poll):
                self.retry_deferred()
        except KeyboardInterrupt:
            logger.info("Stopping ingestion pipeline...")
        finally:
            self.stop()
