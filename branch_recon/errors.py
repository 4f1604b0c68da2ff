"""Error taxonomy for the branch statistics pipeline.

Everything except BranchPipelineFailure is recovered where it is raised: an
unavailable source becomes an empty record list and an unavailable dayend becomes
the start-of-day cutoff. BranchPipelineFailure is caught by the orchestrator and
reported as ``error=True`` on that branch's snapshot.
"""
from __future__ import annotations

from typing import Optional


class ReconError(Exception):
    """Base class for reconciliation errors"""


class SourceUnavailable(ReconError):
    """An upstream fetch failed, timed out, or returned something unusable"""

    def __init__(self, source: str, branch_id: Optional[str] = None, reason: str = ""):
        self.source = source
        self.branch_id = branch_id
        self.reason = reason
        where = f" for branch {branch_id}" if branch_id is not None else ""
        super().__init__(f"{source} unavailable{where}: {reason}" if reason else f"{source} unavailable{where}")


class DayendUnavailable(SourceUnavailable):
    """The dayend lookup failed; callers fall back to start of today"""

    def __init__(self, branch_id: Optional[str] = None, reason: str = ""):
        super().__init__("dayend", branch_id, reason)


class MalformedEnvelope(ReconError):
    """A response could not be reduced to a record list"""


class BranchPipelineFailure(ReconError):
    """One branch's pipeline could not produce statistics"""

    def __init__(self, branch_id: str, reason: str):
        self.branch_id = branch_id
        self.reason = reason
        super().__init__(f"branch {branch_id}: {reason}")
