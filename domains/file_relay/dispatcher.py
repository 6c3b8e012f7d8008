"""
Dispatcher: fans one record out to both sinks in parallel.

Both branches always run to completion; one failing never stops the other,
because the DB and the archive are independent replicas rather than halves
of one transaction. Aggregation itself never raises.
"""

import contextvars
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional, Protocol

from loguru import logger

from domains.file_relay.errors import BranchTimeout, RelayError
from domains.file_relay.models import DeliveryOutcome, DeliveryStatus, DispatchResult, Record, Sink


class RecordSink(Protocol):
    sink: Sink

    def deliver(self, record: Record) -> DeliveryOutcome:
        ...


class Dispatcher:
    """Runs DbSink and FileSink concurrently and aggregates their outcomes."""

    def __init__(
        self,
        db_sink: RecordSink,
        file_sink: RecordSink,
        branch_timeout: Optional[float] = 30.0,
        max_workers: int = 4,
    ):
        """
        Initialize dispatcher.

        Args:
            db_sink: Sink for the relational store
            file_sink: Sink for the processed-file archive
            branch_timeout: Seconds each branch may take; None waits forever
            max_workers: Thread pool size; needs headroom for abandoned branches
        """
        self.db_sink = db_sink
        self.file_sink = file_sink
        self.branch_timeout = branch_timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max(2, max_workers), thread_name_prefix="relay-dispatch"
        )

    def _submit(self, sink: RecordSink, record: Record) -> Future:
        # Copy the caller's context so the DB branch can join an ambient transaction
        context = contextvars.copy_context()
        return self._executor.submit(context.run, sink.deliver, record)

    def _collect(self, sink: Sink, future: Future, record: Record, deadline: Optional[float]) -> DeliveryOutcome:
        started = time.monotonic()
        timeout = None if deadline is None else max(0.0, deadline - started)

        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            future.cancel()
            error = BranchTimeout(f"{sink.value} delivery of id={record.id} exceeded {self.branch_timeout}s")
            logger.error(f"Delivery failed for id={record.id} sink={sink.value}: {error}")
        except Exception as e:
            error = e if isinstance(e, RelayError) else RelayError(f"Unexpected {type(e).__name__}: {e}")
            if error is not e:
                error.__cause__ = e
            logger.exception(f"Delivery failed for id={record.id} sink={sink.value}: {e}")

        return DeliveryOutcome(sink, DeliveryStatus.FAILED, error, time.monotonic() - started)

    def dispatch(self, record: Record) -> DispatchResult:
        """Deliver record to both sinks concurrently and wait for both."""
        logger.info(f"Dispatching id={record.id}")
        deadline = None if self.branch_timeout is None else time.monotonic() + self.branch_timeout

        db_future = self._submit(self.db_sink, record)
        file_future = self._submit(self.file_sink, record)

        result = DispatchResult(
            record_id=record.id,
            db=self._collect(Sink.DB, db_future, record, deadline),
            file=self._collect(Sink.FILE, file_future, record, deadline),
        )

        summary = ", ".join(f"{o.sink.value}={o.status.value}" for o in result.outcomes)
        if result.fully_handled:
            logger.info(f"Dispatch complete for id={record.id}: {summary}")
        else:
            logger.warning(f"Dispatch incomplete for id={record.id}: {summary}")
        return result

    def close(self):
        """Shut down the branch thread pool without joining abandoned branches."""
        # Timed-out branches may still be blocked in a sink call
        self._executor.shutdown(wait=False, cancel_futures=True)
