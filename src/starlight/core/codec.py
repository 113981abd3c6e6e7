"""Text codec for persisted records.

Every slot value is UTF-8 JSON text.  Collections are JSON arrays of
camelCase objects, map slots (profile details) are JSON objects keyed by
owner e-mail, single-record slots hold one object.

Decoding is tolerant by default:

- a blob that is not valid JSON, or not the expected container, decodes as
  an empty collection;
- an entry that fails validation is dropped on its own, the rest survive.

Each rejection is logged at WARNING with the slot name so that the loss is
visible to an operator.  Pass ``strict=True`` to get a
:class:`~starlight.core.exceptions.MalformedRecordError` instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from starlight.core.exceptions import MalformedRecordError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_LOGGED_RAW = 200


@dataclass
class DecodeResult(Generic[T]):
    """Outcome of decoding a collection blob.

    Attributes:
        records: Entries that validated, in stored order.
        rejected: One :class:`MalformedRecordError` per dropped entry (or a
            single one for a blob that could not be parsed at all).
    """

    records: list[T] = field(default_factory=list)
    rejected: list[MalformedRecordError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.rejected


@lru_cache(maxsize=None)
def _adapter(record_type: Any) -> TypeAdapter:
    return TypeAdapter(record_type)


def _truncate(raw: object) -> str:
    text = raw if isinstance(raw, str) else repr(raw)
    return text if len(text) <= _MAX_LOGGED_RAW else text[:_MAX_LOGGED_RAW] + "…"


def _dump(record: Any) -> Any:
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json", by_alias=True)
    return _adapter(type(record)).dump_python(record, mode="json", by_alias=True)


def _reject(
    message: str,
    *,
    slot: str | None,
    raw: object,
    strict: bool,
) -> MalformedRecordError:
    error = MalformedRecordError(message, slot=slot, raw=_truncate(raw))
    if strict:
        raise error
    logger.warning(
        "codec: dropped malformed data",
        extra={"slot": slot, "reason": message, "raw": error.raw},
    )
    return error


# ---------------------------------------------------------------------------
# Single records
# ---------------------------------------------------------------------------


def encode_record(record: Any) -> str:
    """Serialize one record to JSON text (camelCase keys)."""
    return json.dumps(_dump(record), ensure_ascii=False)


def decode_record(record_type: Any, text: str, *, slot: str | None = None) -> Any:
    """Parse and validate one record.

    Single-record slots have no partial result to fall back on, so this
    always raises on failure.

    Raises:
        MalformedRecordError: The text is not valid JSON or fails validation.
    """
    try:
        return _adapter(record_type).validate_json(text)
    except ValidationError as exc:
        raise MalformedRecordError(
            f"invalid {getattr(record_type, '__name__', 'record')}: {exc.error_count()} error(s)",
            slot=slot,
            raw=_truncate(text),
        ) from exc


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def encode_collection(records: Sequence[Any]) -> str:
    """Serialize a sequence of records (or plain strings) as a JSON array."""
    return json.dumps([_dump(r) for r in records], ensure_ascii=False)


def decode_collection(
    record_type: Any,
    text: str | None,
    *,
    slot: str | None = None,
    strict: bool = False,
) -> DecodeResult[Any]:
    """Decode a JSON array, isolating entries that fail validation.

    Args:
        record_type: Model class, union alias, or ``str`` for name lists.
        text: Stored blob; ``None`` means the slot is absent.
        slot: Slot name, for diagnostics.
        strict: Raise on the first problem instead of dropping it.

    Returns:
        A :class:`DecodeResult` with the surviving records.
    """
    result: DecodeResult[Any] = DecodeResult()
    if text is None:
        return result

    try:
        payload = json.loads(text)
    except ValueError as exc:
        result.rejected.append(
            _reject(f"not valid JSON: {exc}", slot=slot, raw=text, strict=strict)
        )
        return result

    if not isinstance(payload, list):
        result.rejected.append(
            _reject(
                f"expected a JSON array, got {type(payload).__name__}",
                slot=slot,
                raw=text,
                strict=strict,
            )
        )
        return result

    adapter = _adapter(record_type)
    for index, entry in enumerate(payload):
        try:
            result.records.append(adapter.validate_python(entry))
        except ValidationError as exc:
            result.rejected.append(
                _reject(
                    f"entry {index} failed validation: {exc.error_count()} error(s)",
                    slot=slot,
                    raw=entry,
                    strict=strict,
                )
            )
    return result


# ---------------------------------------------------------------------------
# Map slots
# ---------------------------------------------------------------------------


def encode_mapping(mapping: dict[str, Any]) -> str:
    """Serialize a ``{key: record}`` map as a JSON object."""
    return json.dumps({k: _dump(v) for k, v in mapping.items()}, ensure_ascii=False)


def decode_mapping(
    record_type: Any,
    text: str | None,
    *,
    slot: str | None = None,
    strict: bool = False,
) -> DecodeResult[tuple[str, Any]]:
    """Decode a JSON object into ``(key, record)`` pairs.

    Follows the same isolation rules as :func:`decode_collection`.
    """
    result: DecodeResult[tuple[str, Any]] = DecodeResult()
    if text is None:
        return result

    try:
        payload = json.loads(text)
    except ValueError as exc:
        result.rejected.append(
            _reject(f"not valid JSON: {exc}", slot=slot, raw=text, strict=strict)
        )
        return result

    if not isinstance(payload, dict):
        result.rejected.append(
            _reject(
                f"expected a JSON object, got {type(payload).__name__}",
                slot=slot,
                raw=text,
                strict=strict,
            )
        )
        return result

    adapter = _adapter(record_type)
    for key, entry in payload.items():
        try:
            result.records.append((key, adapter.validate_python(entry)))
        except ValidationError as exc:
            result.rejected.append(
                _reject(
                    f"entry {key!r} failed validation: {exc.error_count()} error(s)",
                    slot=slot,
                    raw=entry,
                    strict=strict,
                )
            )
    return result
