"""
Branch Isolation Filter

Upstream branch filtering is not trusted. A record is kept for a branch only when it
carries a branch id and that id matches; records without any branch id are dropped.
Losing a legitimately owned record is preferred over leaking another branch's sales
into this branch's totals.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List

from .models import CanonicalRecord

logger = logging.getLogger(__name__)


def _key(value: Any) -> str:
    return str(value).strip()


def belongs_to_branch(record: CanonicalRecord, branch_id: Any) -> bool:
    if record.branch_id is None or branch_id is None:
        return False
    key = _key(record.branch_id)
    return bool(key) and key == _key(branch_id)


def isolate(records: Iterable[CanonicalRecord], branch_id: Any) -> List[CanonicalRecord]:
    kept: List[CanonicalRecord] = []
    missing = foreign = 0
    for record in records:
        if belongs_to_branch(record, branch_id):
            kept.append(record)
        elif record.branch_id is None:
            missing += 1
        else:
            foreign += 1
    if missing or foreign:
        logger.debug(
            "branch %s: rejected %d records without branch id and %d from other branches",
            branch_id, missing, foreign,
        )
    return kept
