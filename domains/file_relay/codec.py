"""JSON codec: raw source file bytes -> Record."""

import json

from pydantic import ValidationError

from app.utils.helpers import now_utc
from domains.file_relay.errors import DecodeError
from domains.file_relay.models import Record


def decode_record(raw: bytes) -> Record:
    """
    Decode raw file contents into a Record.

    The payload must be a JSON object with at least ``id`` and ``message``.
    Extra fields are ignored; ``received_at`` is always assigned here.

    Raises:
        DecodeError: malformed JSON or a structurally invalid object
    """
    try:
        payload = json.loads(raw)
    except RecursionError as e:
        raise DecodeError("JSON nested too deeply") from e
    except ValueError as e:
        # JSONDecodeError, UnicodeDecodeError and the int-digit limit
        raise DecodeError(f"Not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    payload = {k: v for k, v in payload.items() if k != "received_at"}

    try:
        return Record.model_validate({**payload, "received_at": now_utc()})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
            for err in e.errors()
        )
        raise DecodeError(f"Invalid record: {problems}") from e
