"""
Data model for the file relay domain.

- Record: decoded, immutable unit of work
- DeliveryOutcome: result of one sink attempt
- DispatchResult: both outcomes for one record
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.helpers import is_safe_path_component, now_utc
from domains.file_relay.errors import DispatchPartialFailure


class Sink(str, Enum):
    DB = "DB"
    FILE = "FILE"


class DeliveryStatus(str, Enum):
    COMMITTED = "COMMITTED"
    SKIPPED_DUPLICATE = "SKIPPED_DUPLICATE"
    FAILED = "FAILED"


class Record(BaseModel):
    """A decoded source file: identity plus payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    message: str
    received_at: datetime = Field(default_factory=now_utc)

    @field_validator("id", mode="before")
    @classmethod
    def _normalise_id(cls, value: Any) -> str:
        # bool is an int subclass; true/false are not identities
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValueError("id must be a string or integer")
        value = str(value)
        if not is_safe_path_component(value):
            raise ValueError(f"id {value!r} is not usable as an archive file name")
        return value

    @field_validator("message", mode="before")
    @classmethod
    def _normalise_message(cls, value: Any) -> str:
        if value is None:
            raise ValueError("message is required")
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering one record to one sink."""

    sink: Sink
    status: DeliveryStatus
    error: Optional[BaseException] = None
    elapsed: float = 0.0

    def __post_init__(self):
        if (self.status is DeliveryStatus.FAILED) != (self.error is not None):
            raise ValueError("error must be set if and only if status is FAILED")

    @property
    def failed(self) -> bool:
        return self.status is DeliveryStatus.FAILED

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sink": self.sink.value,
            "status": self.status.value,
            "error": repr(self.error) if self.error else None,
            "elapsed": round(self.elapsed, 6),
        }


@dataclass(frozen=True)
class DispatchResult:
    """Aggregate of the DB and FILE outcomes for one record."""

    record_id: str
    db: DeliveryOutcome
    file: DeliveryOutcome

    @property
    def outcomes(self) -> Tuple[DeliveryOutcome, DeliveryOutcome]:
        return (self.db, self.file)

    def outcome_for(self, sink: Sink) -> DeliveryOutcome:
        return self.db if sink is Sink.DB else self.file

    @property
    def failures(self) -> Tuple[DeliveryOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.failed)

    @property
    def fully_handled(self) -> bool:
        """True when every sink either committed or already held the record."""
        return not self.failures

    def raise_for_failure(self):
        """Raise DispatchPartialFailure if any branch failed."""
        if self.failures:
            raise DispatchPartialFailure(self.record_id, self.failures)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "fully_handled": self.fully_handled,
            "outcomes": [outcome.as_dict() for outcome in self.outcomes],
        }
