from __future__ import annotations

import os
from dataclasses import dataclass, replace

# NOTE:
# - The API base URL points at the POS PHP backend (the folder that holds get_sales.php etc).
# - You can override ANY value with environment variables if you prefer.
#
# Suggested env overrides:
#   RECON_API_BASE_URL
#   RECON_API_TOKEN
#   RECON_TERMINAL        (int, default 1)
#   RECON_FETCH_TIMEOUT   (seconds, per upstream call)
#   RECON_TIMEZONE        (pytz zone used for "today", e.g. Asia/Karachi)
#   RECON_LOOKBACK_DAYS   (int)
#   RECON_OUTPUT_DIR
#   RECON_PORT            (default 8000)

@dataclass(frozen=True)
class ReconSettings:
    # Upstream POS API
    api_base_url: str = os.environ.get("RECON_API_BASE_URL", "http://localhost/restuarent/api")
    api_token: str = os.environ.get("RECON_API_TOKEN", "")
    terminal: int = int(os.environ.get("RECON_TERMINAL", "1"))

    # Each upstream fetch gets its own timeout; a slow source is dropped, not waited on
    fetch_timeout_secs: float = float(os.environ.get("RECON_FETCH_TIMEOUT", "10"))

    # "Today" and the no-dayend fallback cutoff are evaluated in this zone
    timezone: str = os.environ.get("RECON_TIMEZONE", "Asia/Karachi")

    # Sales/bills are requested from (today - lookback) to today so a dayend closed
    # late on the previous calendar day still has its later sales in the window
    lookback_days: int = int(os.environ.get("RECON_LOOKBACK_DAYS", "1"))

    # Workbook exports (xlsx)
    output_dir: str = os.environ.get("RECON_OUTPUT_DIR", os.path.join(os.getcwd(), "_output"))

    port: int = int(os.environ.get("RECON_PORT", "8000"))

    def with_overrides(self, **changes) -> "ReconSettings":
        """Return a copy with the non-None values in ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

DEFAULT_SETTINGS = ReconSettings()
