"""Trigger envelope codec for the oracle host boundary.

Centralises the transport concerns the pipeline relies on so that
``function_app.py`` stays a thin wiring layer:

- **decode_trigger_event** — turns an inbound envelope into a
  ``TriggerEvent`` (trigger id, raw query payload, destination).
- **encode_trigger_output** — wraps the serialised ``OracleResult`` for
  the on-chain destination.  The CLI destination receives raw bytes.
- **failure_response** — maps a ``PipelineError`` to an HTTP status and
  a JSON error body.

Envelope shape (JSON object)::

    {"trigger_id": 7, "destination": "chain", "data": "0x7b22...7d"}

``data`` is hex (``0x`` prefix optional) or, for hand-written requests,
an inline JSON object holding the STAC query.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any

from ndvi_oracle.core.exceptions import ContractError, PipelineError

logger = logging.getLogger("ndvi_oracle.core.trigger")

#: Error categories caused by the caller rather than an upstream service.
_CLIENT_ERROR_CATEGORIES = frozenset({"validation", "contract"})


class DecodeError(ContractError):
    """Raised when an inbound trigger envelope is malformed."""

    default_stage = "decode_trigger"
    default_code = "TRIGGER_DECODE_FAILED"


class Destination(enum.Enum):
    """Where the oracle result is delivered."""

    CHAIN = "chain"
    CLI = "cli"


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """A decoded trigger.

    Attributes:
        trigger_id: Identifier echoed back in the chain output envelope.
        payload: Raw query bytes (UTF-8 JSON).
        destination: Delivery target for the result.
    """

    trigger_id: int
    payload: bytes
    destination: Destination


def decode_trigger_event(raw: bytes | str | dict[str, Any]) -> TriggerEvent:
    """Decode an inbound trigger envelope.

    Args:
        raw: Envelope as bytes, a JSON string, or an already-parsed dict.

    Returns:
        The decoded ``TriggerEvent``.

    Raises:
        DecodeError: If the envelope is not a JSON object, the trigger id
            is not a non-negative integer, the destination is unknown, or
            the data field cannot be decoded.
    """
    envelope = _load_envelope(raw)

    trigger_id = envelope.get("trigger_id", 0)
    if isinstance(trigger_id, bool) or not isinstance(trigger_id, int) or trigger_id < 0:
        msg = f"trigger_id must be a non-negative integer, got {trigger_id!r}"
        raise DecodeError(msg)

    dest_raw = str(envelope.get("destination", Destination.CLI.value)).lower()
    try:
        destination = Destination(dest_raw)
    except ValueError as exc:
        msg = f"Unknown trigger destination: {dest_raw!r}"
        raise DecodeError(msg) from exc

    if "data" not in envelope:
        msg = "Trigger envelope is missing the 'data' field"
        raise DecodeError(msg)
    payload = _decode_data(envelope["data"])

    logger.debug(
        "Trigger decoded | trigger_id=%d | destination=%s | payload=%d bytes",
        trigger_id,
        destination.value,
        len(payload),
    )
    return TriggerEvent(trigger_id=trigger_id, payload=payload, destination=destination)


def encode_trigger_output(trigger_id: int, result: bytes) -> bytes:
    """Wrap *result* in the chain output envelope."""
    envelope = {"trigger_id": trigger_id, "data": "0x" + result.hex()}
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")


def build_trigger_response(event: TriggerEvent, result: bytes) -> bytes:
    """Return the bytes to hand back to the host for *event*'s destination."""
    if event.destination is Destination.CHAIN:
        return encode_trigger_output(event.trigger_id, result)
    return result


def failure_response(exc: PipelineError) -> tuple[int, bytes]:
    """Return ``(status, body)`` for a failed invocation.

    Caller mistakes (validation and contract categories) map to 400;
    everything else is an upstream or server-side failure and maps to 502.
    """
    status = 400 if exc.category in _CLIENT_ERROR_CATEGORIES else 502
    return status, json.dumps(exc.to_error_dict()).encode("utf-8")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_envelope(raw: bytes | str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes | bytearray):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"Trigger envelope is not UTF-8: {exc}"
            raise DecodeError(msg) from exc
    if not isinstance(raw, str):
        msg = f"Unexpected trigger envelope type: {type(raw).__name__}"
        raise DecodeError(msg)
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as exc:
        msg = f"Trigger envelope is not valid JSON: {exc}"
        raise DecodeError(msg) from exc
    if not isinstance(parsed, dict):
        msg = f"Trigger envelope must be a JSON object, got {type(parsed).__name__}"
        raise DecodeError(msg)
    return parsed


def _decode_data(data: object) -> bytes:
    if isinstance(data, dict):
        return json.dumps(data).encode("utf-8")
    if not isinstance(data, str):
        msg = f"Trigger data must be a hex string or JSON object, got {type(data).__name__}"
        raise DecodeError(msg)
    hex_str = data[2:] if data.lower().startswith("0x") else data
    try:
        return bytes.fromhex(hex_str)
    except ValueError as exc:
        msg = f"Trigger data is not valid hex: {exc}"
        raise DecodeError(msg) from exc
