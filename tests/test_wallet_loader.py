"""
Tests for wallet list and allocation loading.
"""

import json
from decimal import Decimal

import pytest

from utils.helpers import format_amount, from_atomic, short_address, to_atomic
from utils.wallet_loader import load_allocations, load_wallets, load_wallets_from_env, load_wallets_from_file


class TestWalletFile:
    """load_wallets_from_file() tests"""

    def test_mixed_entries(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps({"wallets": [
            "PlainAddress111",
            {"address": "ObjectAddress222", "name": "Main", "signer_ref": "vault:main", "enabled": False},
            {"name": "no address"},
        ]}))
        wallets = load_wallets_from_file(str(path))
        assert [w.address for w in wallets] == ["PlainAddress111", "ObjectAddress222"]
        assert wallets[0].name == "Wallet 1"
        assert wallets[1].signer_ref == "vault:main"
        assert wallets[1].enabled is False

    def test_bare_list(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps(["A" * 20, "B" * 20]))
        assert len(load_wallets_from_file(str(path))) == 2

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            load_wallets_from_file(str(path))


class TestWalletEnv:
    """load_wallets_from_env() tests"""

    def test_reads_numbered_wallets(self, monkeypatch):
        monkeypatch.setenv("WALLET_2_ADDRESS", "SecondAddress")
        monkeypatch.setenv("WALLET_10_ADDRESS", "TenthAddress")
        monkeypatch.setenv("WALLET_1_ADDRESS", "FirstAddress")
        monkeypatch.setenv("WALLET_1_NAME", "Primary")
        monkeypatch.setenv("WALLET_2_ENABLED", "false")
        wallets = load_wallets_from_env()
        assert [w.address for w in wallets] == ["FirstAddress", "SecondAddress", "TenthAddress"]
        assert wallets[0].name == "Primary"
        assert wallets[1].enabled is False

    def test_missing_file_falls_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WALLET_1_ADDRESS", "FromEnvironment")
        wallets = load_wallets(str(tmp_path / "absent.json"))
        assert "FromEnvironment" in [w.address for w in wallets]


class TestAllocations:
    """load_allocations() tests"""

    def test_converts_to_atomic(self, tmp_path):
        path = tmp_path / "allocations.json"
        path.write_text(json.dumps({"wallet1": 0.25, "SomeAddress": "1.5", "wallet3": 0, "wallet4": "abc"}))
        allocations = load_allocations(str(path), decimals=9)
        assert allocations == {"wallet1": 250_000_000, "SomeAddress": 1_500_000_000}

    def test_missing_file(self, tmp_path):
        assert load_allocations(str(tmp_path / "absent.json"), decimals=9) == {}
        assert load_allocations(None, decimals=9) == {}

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "allocations.json"
        path.write_text(json.dumps([1, 2, 3]))
        assert load_allocations(str(path), decimals=9) == {}


def test_to_atomic_rounds_down():
    assert to_atomic("0.0000000019", 9) == 1
    assert to_atomic(1, 6) == 1_000_000


def test_short_address():
    assert short_address("ABCDEFGHIJKLMNOP") == "ABCDEF...MNOP"
    assert short_address("short") == "short"


def test_format_amount():
    assert format_amount(1_500_000_000, 9) == "1.500000"
    assert format_amount(29_000_000 * 10**6, 6, 0) == "29000000"
    assert from_atomic(250_000_000, 9) == Decimal("0.25")
