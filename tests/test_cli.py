import argparse
from decimal import Decimal

import pytest

from branch_recon import cli
from branch_recon.models import Branch, BranchStatisticsSnapshot


def test_parse_branch_arg():
    assert cli.parse_branch_arg("5:Main Branch") == Branch("5", "Main Branch")
    assert cli.parse_branch_arg(" 7 ") == Branch("7", "Unknown Branch")
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_branch_arg(":Nameless")


def test_render_table():
    text = cli.render_table([
        BranchStatisticsSnapshot("1", "Main", daily_sales=Decimal("1500"), complete_bills=2),
        BranchStatisticsSnapshot.failed(Branch("2", "Mall"), "boom"),
    ])
    assert "PKR 1,500.00" in text
    assert "Mall" in text
    assert "ERROR" in text
    assert cli.render_table([]) == "No branches."


def test_main_prints_and_writes_workbook(monkeypatch, tmp_path, capsys):
    seen = {}

    async def fake_run_stats(settings, branches):
        seen["branches"] = branches
        seen["timeout"] = settings.fetch_timeout_secs
        return [BranchStatisticsSnapshot("5", "Main", daily_sales=Decimal("99"))]

    monkeypatch.setattr(cli, "run_stats", fake_run_stats)
    out = tmp_path / "stats.xlsx"

    code = cli.main(["--branch", "5:Main", "--timeout", "3", "--xlsx", str(out)])

    assert code == 0
    assert seen["branches"] == [Branch("5", "Main")]
    assert seen["timeout"] == 3.0
    assert out.exists()
    assert "PKR 99.00" in capsys.readouterr().out


def test_main_exit_code_flags_failed_branches(monkeypatch):
    async def fake_run_stats(settings, branches):
        return [BranchStatisticsSnapshot.failed(Branch("5"), "boom")]

    monkeypatch.setattr(cli, "run_stats", fake_run_stats)
    assert cli.main([]) == 1
