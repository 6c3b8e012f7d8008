"""Error taxonomy for the file relay domain."""

from typing import Sequence


class RelayError(Exception):
    """Base class for all file relay errors."""


class DecodeError(RelayError):
    """Source file could not be decoded into a record."""


class OracleError(RelayError):
    """An idempotency query could not be answered."""


class StoreUnavailable(OracleError):
    """The backing store (database or archive filesystem) is unreachable."""


class QueryFailed(OracleError):
    """The store was reachable but the existence query failed."""


class WriteConflict(RelayError):
    """Archive destination already exists; a concurrent writer got there first."""


class ArchiveWriteFailed(RelayError):
    """Archive write failed for a reason other than an existing destination."""


class CommitFailed(RelayError):
    """Database insert or commit failed; the transaction was rolled back."""


class BranchTimeout(RelayError):
    """A delivery branch did not finish within its deadline."""


class DispatchPartialFailure(RelayError):
    """At least one delivery branch failed for a record."""

    def __init__(self, record_id: str, failures: Sequence):
        self.record_id = record_id
        self.failures = tuple(failures)
        sinks = ", ".join(outcome.sink.value for outcome in self.failures)
        super().__init__(f"Record {record_id} not fully delivered (failed: {sinks})")
