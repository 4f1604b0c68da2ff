"""
Upstream fetchers

BaseFetcher is the "fetch records" capability the pipeline consumes; it returns raw
response envelopes and leaves their shape to envelope.normalize_envelope().
HttpFetcher talks to the POS PHP API over a shared httpx.AsyncClient.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from .errors import SourceUnavailable
from .models import DateRange
from .settings import ReconSettings

logger = logging.getLogger(__name__)

RawEnvelope = Any


# =============================================================================
# Base Fetcher
# =============================================================================

class BaseFetcher(ABC):
    """Read-only access to one POS backend; safe to share between branch tasks"""

    @abstractmethod
    async def fetch_sales(self, branch_id: str, date_range: DateRange) -> RawEnvelope:
        """Sales-aggregate rows for the branch"""

    @abstractmethod
    async def fetch_bills(self, branch_id: str, date_range: DateRange) -> RawEnvelope:
        """Raw bills for the branch"""

    @abstractmethod
    async def fetch_orders(self, branch_id: str) -> RawEnvelope:
        """All orders for the branch (running and finished)"""

    @abstractmethod
    async def fetch_last_dayend(self, branch_id: str) -> RawEnvelope:
        """Dayend closing events for the branch"""

    @abstractmethod
    async def fetch_branches(self) -> RawEnvelope:
        """Branch list for the dashboard"""

    async def aclose(self) -> None:
        return None


# =============================================================================
# HTTP Fetcher
# =============================================================================

class HttpFetcher(BaseFetcher):
    """
    Fetcher for the POS PHP API.

    Endpoints (relative to settings.api_base_url):
    - POST api/get_sales.php           terminal, branch_id, period, from_date, to_date
    - GET  api/bills_management.php    branch_id, start_date, end_date
    - GET  api/order_management.php    terminal, branch_id
    - POST get_dayend.php              terminal, branch_id
    - POST branch_management.php       action=get
    """

    SALES_PATH = "api/get_sales.php"
    BILLS_PATH = "api/bills_management.php"
    ORDERS_PATH = "api/order_management.php"
    DAYEND_PATH = "get_dayend.php"
    BRANCHES_PATH = "branch_management.php"

    def __init__(self, settings: ReconSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Shared async HTTPX client (keep-alive, pooled)."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.settings.api_token:
                headers["Authorization"] = f"Bearer {self.settings.api_token}"
            self._client = httpx.AsyncClient(
                timeout=self.settings.fetch_timeout_secs,
                headers=headers,
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            )
        return self._client

    def _url(self, path: str) -> str:
        return self.settings.api_base_url.rstrip("/") + "/" + path.lstrip("/")

    async def _request(self, source: str, method: str, path: str, branch_id: Optional[str] = None,
                       params: Optional[Dict[str, Any]] = None, body: Optional[Dict[str, Any]] = None) -> RawEnvelope:
        url = self._url(path)
        try:
            if method == "GET":
                r = await self.client.get(url, params=params)
            else:
                r = await self.client.post(url, json=body)
        except httpx.HTTPError as e:
            raise SourceUnavailable(source, branch_id, f"{type(e).__name__} calling {path}") from e

        if r.status_code >= 400:
            raise SourceUnavailable(source, branch_id, f"HTTP {r.status_code} from {path}")

        text = r.text
        if not text or not text.strip():
            raise SourceUnavailable(source, branch_id, f"empty response from {path}")
        try:
            data = r.json()
        except ValueError as e:
            raise SourceUnavailable(source, branch_id, f"non-JSON response from {path}") from e

        # Some list endpoints answer {} when there are no rows
        if isinstance(data, dict) and not data:
            return []
        return data

    async def fetch_sales(self, branch_id: str, date_range: DateRange) -> RawEnvelope:
        body = {
            "terminal": self.settings.terminal,
            "branch_id": branch_id,
            "period": "daily",
            **date_range.to_params(),
        }
        return await self._request("sales", "POST", self.SALES_PATH, branch_id, body=body)

    async def fetch_bills(self, branch_id: str, date_range: DateRange) -> RawEnvelope:
        params = {
            "branch_id": branch_id,
            "start_date": date_range.start.isoformat(),
            "end_date": date_range.end.isoformat(),
        }
        return await self._request("bills", "GET", self.BILLS_PATH, branch_id, params=params)

    async def fetch_orders(self, branch_id: str) -> RawEnvelope:
        params = {"terminal": self.settings.terminal, "branch_id": branch_id}
        return await self._request("orders", "GET", self.ORDERS_PATH, branch_id, params=params)

    async def fetch_last_dayend(self, branch_id: str) -> RawEnvelope:
        body = {"terminal": self.settings.terminal, "branch_id": branch_id}
        return await self._request("dayend", "POST", self.DAYEND_PATH, branch_id, body=body)

    async def fetch_branches(self) -> RawEnvelope:
        return await self._request("branches", "POST", self.BRANCHES_PATH, body={"action": "get"})

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
