"""Tests for environment-driven settings."""

import pytest

from stockwatch.config import AppSettings, BackfillSettings, ProviderSettings, RefreshSettings


def test_defaults() -> None:
    refresh = RefreshSettings()
    backfill = BackfillSettings()
    provider = ProviderSettings()

    assert refresh.timezone == "UTC"
    assert backfill.lookback_days == 50
    assert backfill.default_currency == "USD"
    assert provider.source == "yahoo"


def test_section_prefix_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("PROVIDER_SOURCE", "ccxt")

    assert RefreshSettings().interval_seconds == 15
    assert ProviderSettings().source == "ccxt"


def test_nested_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BACKFILL__LOOKBACK_DAYS", "10")
    assert AppSettings().backfill.lookback_days == 10


def test_tracked_symbols_are_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKED_SYMBOLS", '["aapl", " msft ", ""]')
    assert AppSettings().tracked_symbols == ["AAPL", "MSFT"]


def test_unknown_provider_rejected() -> None:
    with pytest.raises(ValueError):
        ProviderSettings(source="bloomberg")  # type: ignore[arg-type]
