"""
Endpoint Normalizer

The POS endpoints wrap their rows in whatever envelope the PHP script happened to
build: a bare array, {data: [...]}, {data: {data: [...]}}, {sales: [...]}, and so on.
normalize_envelope() reduces any of them to a flat list of row dicts and tags the
shape it found so callers can log surprises without having to handle exceptions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import MalformedEnvelope


# Checked in this order before falling back to scanning every property
ENVELOPE_KEYS = ("data", "sales", "bills", "orders", "branches", "dayends", "records")

# Nested {data: {data: ...}} envelopes deeper than this are treated as malformed
MAX_DEPTH = 4


class EnvelopeShape(str, Enum):
    BARE_LIST = "bare_list"   # [...]
    KEYED = "keyed"           # {<known key>: [...]}, possibly nested
    SCANNED = "scanned"       # {<any key>: [...]}
    EMPTY = "empty"           # None, {} or a known key holding null
    FAILED = "failed"         # {success: false, ...}
    MALFORMED = "malformed"   # no list anywhere


@dataclass
class EnvelopeResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    shape: EnvelopeShape = EnvelopeShape.EMPTY
    problem: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.problem is None


def _signals_failure(envelope: Dict[str, Any]) -> bool:
    flag = envelope.get("success", True)
    if isinstance(flag, str):
        return flag.strip().lower() in ("false", "0", "error")
    return flag is False or flag == 0


def _extract(envelope: Any, depth: int = 0) -> tuple:
    """Return (rows, shape). Raises MalformedEnvelope when no list can be found."""
    if depth > MAX_DEPTH:
        raise MalformedEnvelope(f"envelope nested deeper than {MAX_DEPTH} levels")

    if envelope is None:
        return [], EnvelopeShape.EMPTY
    if isinstance(envelope, list):
        return envelope, EnvelopeShape.BARE_LIST if depth == 0 else EnvelopeShape.KEYED
    if not isinstance(envelope, dict):
        raise MalformedEnvelope(f"unexpected envelope type {type(envelope).__name__}")

    if _signals_failure(envelope):
        return [], EnvelopeShape.FAILED

    if not envelope:
        return [], EnvelopeShape.EMPTY

    # A wrapper that holds no array ({data: {total: 0}}) does not stop the search
    saw_empty = False
    for key in ENVELOPE_KEYS:
        value = envelope.get(key)
        if isinstance(value, list):
            return value, EnvelopeShape.KEYED
        if isinstance(value, dict):
            try:
                rows, shape = _extract(value, depth + 1)
            except MalformedEnvelope:
                continue
            if shape == EnvelopeShape.EMPTY:
                saw_empty = True
                continue
            if shape in (EnvelopeShape.BARE_LIST, EnvelopeShape.SCANNED):
                shape = EnvelopeShape.KEYED
            return rows, shape
        if key in envelope and value is None:
            # {data: null} is how some endpoints say "no rows"
            saw_empty = True

    for value in envelope.values():
        if isinstance(value, list):
            return value, EnvelopeShape.SCANNED

    if saw_empty:
        return [], EnvelopeShape.EMPTY

    raise MalformedEnvelope(f"no array found under keys {sorted(map(str, envelope))[:8]}")


def normalize_envelope(envelope: Any) -> EnvelopeResult:
    """
    Reduce an arbitrarily shaped response to its record list.

    Never raises. ``success: false`` and unrecognised shapes give an empty list with
    ``problem`` set; list items that are not objects are dropped and reported.
    """
    try:
        rows, shape = _extract(envelope)
    except MalformedEnvelope as e:
        return EnvelopeResult([], EnvelopeShape.MALFORMED, str(e))

    if shape == EnvelopeShape.FAILED:
        message = _failure_message(envelope) or "success=false"
        return EnvelopeResult([], shape, f"upstream reported failure: {message}")

    records = [row for row in rows if isinstance(row, dict)]
    dropped = len(rows) - len(records)
    problem = f"dropped {dropped} non-object rows" if dropped else None
    return EnvelopeResult(records, shape, problem)


def _failure_message(envelope: Any, depth: int = 0) -> Optional[str]:
    """Message of the first wrapper that reports failure, searched like _extract"""
    if not isinstance(envelope, dict) or depth > MAX_DEPTH:
        return None
    if _signals_failure(envelope):
        return str(envelope.get("message") or envelope.get("error") or "success=false")
    for key in ENVELOPE_KEYS:
        if isinstance(envelope.get(key), dict):
            message = _failure_message(envelope[key], depth + 1)
            if message is not None:
                return message
    return None
