from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .client import HttpFetcher
from .cutoff import local_now
from .engine import compute_branch_statistics, fetch_branch_list
from .models import Branch, BranchStatisticsSnapshot
from .outputs import export_filename, format_pkr, snapshots_frame, write_stats_xlsx
from .settings import DEFAULT_SETTINGS, ReconSettings


def parse_branch_arg(value: str) -> Branch:
    """'5:Main Branch' -> Branch('5', 'Main Branch'); '5' -> Branch('5')"""
    branch_id, _, name = value.partition(":")
    if not branch_id.strip():
        raise argparse.ArgumentTypeError(f"missing branch id in {value!r}")
    return Branch(branch_id=branch_id.strip(), branch_name=name.strip() or "Unknown Branch")


async def run_stats(settings: ReconSettings, branches: Optional[List[Branch]]) -> List[BranchStatisticsSnapshot]:
    fetcher = HttpFetcher(settings)
    try:
        if not branches:
            branches = await fetch_branch_list(fetcher)
        return await compute_branch_statistics(branches, fetcher, settings)
    finally:
        await fetcher.aclose()


def render_table(snapshots: List[BranchStatisticsSnapshot]) -> str:
    df = snapshots_frame(snapshots)
    if df.empty:
        return "No branches."
    df["daily_sales"] = df["daily_sales"].map(format_pkr)
    df["credit_sales_total"] = df["credit_sales_total"].map(format_pkr)
    df["error"] = df["error"].map(lambda e: "ERROR" if e else "")
    return df.drop(columns=["cutoff_from_dayend"]).to_string(index=False)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Per-branch daily sales, running orders and complete bills")
    ap.add_argument("--branch", action="append", type=parse_branch_arg, default=[],
                    help="ID[:NAME], repeatable; default is every branch the API lists")
    ap.add_argument("--base-url", help="POS API base URL (overrides RECON_API_BASE_URL)")
    ap.add_argument("--timeout", type=float, help="per-fetch timeout in seconds")
    ap.add_argument("--xlsx", nargs="?", const="", help="write a workbook (default name in RECON_OUTPUT_DIR)")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = DEFAULT_SETTINGS.with_overrides(api_base_url=args.base_url, fetch_timeout_secs=args.timeout)
    snapshots = asyncio.run(run_stats(settings, args.branch))
    print(render_table(snapshots))

    if args.xlsx is not None:
        out = Path(args.xlsx) if args.xlsx else Path(settings.output_dir) / export_filename(local_now(settings))
        out.parent.mkdir(parents=True, exist_ok=True)
        write_stats_xlsx(out, snapshots)
        print(f"Wrote: {out}")

    return 1 if any(s.error for s in snapshots) else 0


if __name__ == "__main__":
    raise SystemExit(main())
