"""Operator price grid script."""
from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "price_table.py"


@pytest.fixture(scope="module")
def price_table():
    spec = importlib.util.spec_from_file_location("price_table", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_grid_prints_prices_and_manual_quotes(price_table, capsys):
    rc = price_table.main([
        "--when", "2030-01-02T10:00",
        "--now", "2030-01-01T09:00",
        "--miles", "30", "180",
    ])
    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[1].split()[-1] == "155"
    assert "Manual quote required for 180+ miles" in lines[2]


def test_grid_for_return_profile(price_table, capsys):
    price_table.main([
        "--industry", "medical",
        "--service", "same_day_return",
        "--when", "2030-01-02T10:00",
        "--now", "2030-01-01T09:00",
        "--miles", "30",
    ])
    assert capsys.readouterr().out.splitlines()[1].split()[-1] == "280"


def test_rejects_unknown_industry(price_table):
    with pytest.raises(SystemExit):
        price_table.main(["--industry", "florist"])
