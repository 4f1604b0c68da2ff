from __future__ import annotations

import io
import logging
from typing import List, Optional

import pytz
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator

from .client import BaseFetcher, HttpFetcher
from .cutoff import local_now
from .engine import compute_branch_statistics, compute_single_branch, fetch_branch_list
from .errors import SourceUnavailable
from .models import Branch
from .outputs import export_filename, totals, write_stats_xlsx
from .settings import DEFAULT_SETTINGS, ReconSettings


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Branch Statistics API", version="1.0")

# The dashboard is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_settings: ReconSettings = DEFAULT_SETTINGS
_fetcher: Optional[BaseFetcher] = None


def get_fetcher() -> BaseFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = HttpFetcher(_settings)
    return _fetcher


# ============================================================================
# Request Models
# ============================================================================

class BranchIn(BaseModel):
    branch_id: str
    branch_name: Optional[str] = None


class SettingsUpdate(BaseModel):
    api_base_url: Optional[str] = None
    terminal: Optional[int] = None
    fetch_timeout_secs: Optional[float] = Field(default=None, gt=0)
    timezone: Optional[str] = None
    lookback_days: Optional[int] = Field(default=None, ge=0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"unknown timezone {value!r}")
        return value


# ============================================================================
# Helper Functions
# ============================================================================

def _branches(items: List[BranchIn]) -> List[Branch]:
    return [Branch(branch_id=b.branch_id.strip(), branch_name=b.branch_name or "Unknown Branch") for b in items]


async def _upstream_branches() -> List[Branch]:
    try:
        return await fetch_branch_list(get_fetcher())
    except SourceUnavailable as e:
        logger.error("branch list unavailable: %s", e)
        raise HTTPException(status_code=502, detail=str(e))


async def _stats_payload(branches: List[Branch]) -> dict:
    snapshots = await compute_branch_statistics(branches, get_fetcher(), _settings)
    t = totals(snapshots)
    return {
        "generated_at": local_now(_settings).isoformat(),
        "branches": [s.to_dict() for s in snapshots],
        "totals": {
            **t,
            "daily_sales": float(t["daily_sales"]),
            "credit_sales_total": float(t["credit_sales_total"]),
        },
    }


# ============================================================================
# API Endpoints
# ============================================================================

@app.on_event("shutdown")
async def _shutdown():
    if _fetcher is not None:
        await _fetcher.aclose()


@app.get("/health")
def health():
    """Simple health check endpoint"""
    return {"ok": True, "status": "running"}


@app.get("/status")
def status():
    """Current settings (the token is never echoed)"""
    return {
        "settings": {
            "api_base_url": _settings.api_base_url,
            "terminal": _settings.terminal,
            "fetch_timeout_secs": _settings.fetch_timeout_secs,
            "timezone": _settings.timezone,
            "lookback_days": _settings.lookback_days,
            "token_configured": bool(_settings.api_token),
        },
        "local_time": local_now(_settings).isoformat(),
    }


@app.patch("/settings")
async def update_settings(updates: SettingsUpdate):
    """Update backend settings; the HTTP client is rebuilt on next use"""
    global _settings, _fetcher

    _settings = _settings.with_overrides(**updates.model_dump())
    if isinstance(_fetcher, HttpFetcher):
        await _fetcher.aclose()
        _fetcher = None
    logger.info("settings updated: %s", {k: v for k, v in updates.model_dump().items() if v is not None})
    return {"ok": True, "settings": status()["settings"]}


@app.get("/stats/branches")
async def stats_all_branches():
    """Statistics for every branch the POS backend lists"""
    return await _stats_payload(await _upstream_branches())


@app.post("/stats/branches")
async def stats_for_branches(branches: List[BranchIn]):
    """Statistics for the given branches, in the given order"""
    return await _stats_payload(_branches(branches))


@app.get("/stats/branches/{branch_id}")
async def stats_for_branch(branch_id: str, branch_name: Optional[str] = None):
    """Recompute a single branch (dashboard retry for a row flagged error)"""
    snapshot = await compute_single_branch(
        Branch(branch_id=branch_id.strip(), branch_name=branch_name or "Unknown Branch"),
        get_fetcher(),
        _settings,
    )
    return snapshot.to_dict()


@app.get("/stats/export")
async def export_stats():
    """Download the statistics for all branches as an Excel workbook"""
    branches = await _upstream_branches()
    snapshots = await compute_branch_statistics(branches, get_fetcher(), _settings)
    now = local_now(_settings)

    bio = io.BytesIO()
    write_stats_xlsx(bio, snapshots, {"generated_at": now.strftime("%Y-%m-%d %H:%M:%S")})
    return StreamingResponse(
        bio,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(now)}"'},
    )
