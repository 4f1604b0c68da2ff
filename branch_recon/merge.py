"""
Multi-Source Merger

Sources are merged in priority order (sales before bills). The first copy of an
identity is kept as-is; later copies only backfill fields the kept copy is missing,
typically the customer id or payment fields the sales aggregate leaves out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import CanonicalRecord, Source

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    records: List[CanonicalRecord] = field(default_factory=list)
    duplicates: int = 0
    # Identities whose amount differed between sources (first source kept)
    amount_conflicts: int = 0


def fill_missing(target: CanonicalRecord, other: CanonicalRecord) -> List[str]:
    """Copy fields that are empty on ``target`` from ``other``; returns the names filled"""
    filled = []
    for name in CanonicalRecord.FILLABLE:
        if target.is_missing(name) and not other.is_missing(name):
            setattr(target, name, getattr(other, name))
            filled.append(name)
    if target.amount == 0 and other.amount != 0:
        target.amount = other.amount
        filled.append("amount")
    return filled


def merge_sources(sources: Sequence[Tuple[Source, Iterable[CanonicalRecord]]]) -> MergeResult:
    """
    Deduplicate records from several sources by identity.

    ``sources`` must already be in priority order. Input records are not mutated;
    the result holds copies.
    """
    result = MergeResult()
    by_id: Dict[str, CanonicalRecord] = {}

    for source, records in sources:
        for record in records:
            if record.record_id is None:
                result.records.append(replace(record))
                continue

            kept = by_id.get(record.record_id)
            if kept is None:
                kept = replace(record)
                by_id[record.record_id] = kept
                result.records.append(kept)
                continue

            result.duplicates += 1
            if record.amount != 0 and kept.amount != 0 and record.amount != kept.amount:
                result.amount_conflicts += 1
                logger.warning(
                    "record %s: %s amount %s disagrees with %s amount %s, keeping %s",
                    record.record_id, source.value, record.amount,
                    kept.source_origin.value, kept.amount, kept.source_origin.value,
                )
            filled = fill_missing(kept, record)
            if filled:
                logger.debug("record %s: filled %s from %s", record.record_id, ", ".join(filled), source.value)

    return result
