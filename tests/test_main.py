"""
Tests for the command line wiring.
"""

import argparse
import json

import pytest

from config.settings import Settings
from core.paper_market import PaperMarket
from main import build_from_settings, load_backend, parse_args, parse_indices
from models.policy import SchedulerConfig
from models.trade import SchedulerState
from models.wallet import SelectionPolicy


def test_parse_indices():
    assert parse_indices("1,3, 5") == [1, 3, 5]
    with pytest.raises(argparse.ArgumentTypeError):
        parse_indices("1,x")


def test_parse_args_defaults():
    args = parse_args([])
    assert args.headless is False
    assert args.select == "all"
    assert args.max_ticks is None


def test_build_dry_run_from_wallet_file(tmp_path):
    path = tmp_path / "wallets.json"
    path.write_text(json.dumps({"wallets": [f"Wallet{i:02d}" + "k" * 32 for i in range(1, 6)]}))
    args = parse_args(["--dry-run", "--wallets", str(path), "--select", "specific",
                       "--indices", "2,4", "--seed", "3"])

    scheduler = build_from_settings(args)

    assert [r.index for r in scheduler.ledger] == [2, 4]
    assert isinstance(scheduler.gateway, PaperMarket)
    assert scheduler.state == SchedulerState.IDLE


def test_load_backend_rejects_bad_path():
    with pytest.raises(ValueError):
        load_backend("no_factory_here")


def test_selection_policy_from_settings():
    config = SchedulerConfig.from_settings(Settings(selection_policy="round_robin"))
    assert config.selection_policy == SelectionPolicy.ROUND_ROBIN
    assert SchedulerConfig.from_settings(Settings()).selection_policy == SelectionPolicy.RANDOM
