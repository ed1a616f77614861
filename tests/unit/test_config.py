"""Unit tests for environment-driven settings"""

from decimal import Decimal

import pytest

from dscr_underwriter.config import get_settings


@pytest.mark.parametrize("raw, expected", [
    ("true", True),
    ("1", True),
    ("TRUE", False),
    ("yes", False),
    ("0", False),
    ("false", False),
])
def test_require_rate_approval_parsing(monkeypatch, raw, expected):
    monkeypatch.setenv("REQUIRE_RATE_APPROVAL", raw)

    assert get_settings().require_rate_approval is expected


def test_require_rate_approval_defaults_off(monkeypatch):
    monkeypatch.delenv("REQUIRE_RATE_APPROVAL", raising=False)

    assert get_settings().require_rate_approval is False


def test_settings_reread_on_each_call(monkeypatch):
    monkeypatch.setenv("REQUIRE_RATE_APPROVAL", "0")
    assert get_settings().require_rate_approval is False

    monkeypatch.setenv("REQUIRE_RATE_APPROVAL", "true")
    assert get_settings().require_rate_approval is True


@pytest.mark.parametrize("raw, expected", [
    ("1.5", Decimal("1.5")),
    (" 2 ", Decimal("2")),
    ("abc", Decimal("1.25")),
    ("0", Decimal("1.25")),
    ("-1", Decimal("1.25")),
    ("NaN", Decimal("1.25")),
    ("Infinity", Decimal("1.25")),
])
def test_default_dscr_target_parsing(monkeypatch, raw, expected):
    monkeypatch.setenv("DEFAULT_DSCR_TARGET", raw)

    assert get_settings().default_dscr_target == expected


@pytest.mark.parametrize("raw, expected", [
    ("100", 100),
    ("abc", 500),
    ("0", 500),
    ("-3", 500),
    ("1.5", 500),
])
def test_max_transactions_per_sync_parsing(monkeypatch, raw, expected):
    monkeypatch.setenv("MAX_TRANSACTIONS_PER_SYNC", raw)

    assert get_settings().max_transactions_per_sync == expected


def test_cash_flow_months_back_falls_back(monkeypatch):
    monkeypatch.setenv("CASH_FLOW_MONTHS_BACK", "soon")

    assert get_settings().cash_flow_months_back == 12
