"""Tests for the read API routes.

Components on ``app.state`` are replaced with mocks so that requests run
without a database or provider.
"""

from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from stockwatch.api.app import create_app
from stockwatch.market_data.quote_cache import QuoteCache
from stockwatch.models import (
    BackfillResult,
    CacheSnapshot,
    DailyBar,
    QuoteSnapshot,
    QuoteWithTrend,
)

NOW = datetime(2024, 3, 4, 10, 0, 0)


def _snapshot(price: str, minute: int, is_day_open: bool = False) -> QuoteSnapshot:
    return QuoteSnapshot(
        symbol="AAPL",
        price=Decimal(price),
        refreshed_at=datetime(2024, 3, 4, 9, minute, 0),
        currency="USD",
        is_day_open=is_day_open,
    )


def _cache_snapshot() -> CacheSnapshot:
    entry = QuoteWithTrend(
        snapshot=QuoteSnapshot(
            symbol="AAPL",
            price=Decimal("187.50"),
            refreshed_at=NOW,
            currency="USD",
            change=Decimal("1.25"),
            change_percent=Decimal("0.67"),
        ),
        daily_trend=Decimal("2.5"),
        last_refresh=NOW,
    )
    return CacheSnapshot(
        entries=MappingProxyType({"AAPL": entry, "NOPE": None}), last_refresh=NOW
    )


@pytest.fixture
def state() -> MagicMock:
    state = MagicMock()
    state.registry.list_symbols = AsyncMock(return_value=["AAPL", "NOPE"])
    state.refresh_engine.refresh_if_stale = AsyncMock(return_value=_cache_snapshot())
    state.refresh_engine.cache = QuoteCache()
    state.intraday_store.list_by_symbol = AsyncMock(return_value=[])
    state.daily_store.list_by_symbol = AsyncMock(return_value=[])
    state.orchestrator.get_status.return_value = {
        "running": True,
        "refresh_cycles": 3,
        "last_refresh": None,
        "last_backfill": None,
        "last_backfill_bars": None,
    }
    state.orchestrator.run_backfill = AsyncMock(
        return_value=BackfillResult(
            total_bars_written=5,
            bars_written={"AAPL": 5},
            errors={"NOPE": "No historical data for NOPE"},
        )
    )
    return state


@pytest.fixture
def client(state: MagicMock) -> TestClient:
    app = create_app()
    app.state.registry = state.registry
    app.state.refresh_engine = state.refresh_engine
    app.state.intraday_store = state.intraday_store
    app.state.daily_store = state.daily_store
    app.state.orchestrator = state.orchestrator
    return TestClient(app)


class TestHealth:
    def test_reports_orchestrator_status(self, client: TestClient) -> None:
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["refresh_cycles"] == 3


class TestQuotes:
    def test_returns_quotes_with_nulls(self, client: TestClient, state: MagicMock) -> None:
        response = client.get("/api/quotes")

        assert response.status_code == 200
        body = response.json()
        assert body["NOPE"] is None
        assert body["AAPL"] == {
            "symbol": "AAPL",
            "price": "187.50",
            "currency": "USD",
            "change": "1.25",
            "change_percent": "0.67",
            "refreshed_at": "2024-03-04T10:00:00",
            "daily_trend": "2.5",
            "last_refresh": "2024-03-04T10:00:00",
        }
        state.refresh_engine.refresh_if_stale.assert_awaited_once_with(["AAPL", "NOPE"])

    def test_no_tracked_symbols(self, client: TestClient, state: MagicMock) -> None:
        state.registry.list_symbols.return_value = []

        response = client.get("/api/quotes")

        assert response.json() == {}
        state.refresh_engine.refresh_if_stale.assert_not_awaited()

    def test_cached_quotes_never_refresh(self, client: TestClient, state: MagicMock) -> None:
        response = client.get("/api/quotes/cached")

        assert response.json() == {"last_refresh": None, "quotes": {}}
        state.refresh_engine.refresh_if_stale.assert_not_awaited()


class TestSymbolEndpoints:
    def test_history_newest_first(self, client: TestClient, state: MagicMock) -> None:
        state.intraday_store.list_by_symbol.return_value = [
            _snapshot("101", 31),
            _snapshot("100", 30),
            _snapshot("100", 0, is_day_open=True),
        ]

        response = client.get("/api/symbols/aapl/history", params={"limit": 3})

        assert response.status_code == 200
        body = response.json()
        assert [row["price"] for row in body] == ["101", "100", "100"]
        assert body[2]["is_day_open"] is True
        state.intraday_store.list_by_symbol.assert_awaited_once_with("AAPL", limit=3)

    def test_history_rejects_zero_limit(self, client: TestClient) -> None:
        response = client.get("/api/symbols/AAPL/history", params={"limit": 0})
        assert response.status_code == 422

    def test_blank_symbol_is_rejected(self, client: TestClient) -> None:
        response = client.get("/api/symbols/%20/history")

        assert response.status_code == 422
        assert "error" in response.json()

    def test_symbol_with_slash(self, client: TestClient, state: MagicMock) -> None:
        client.get("/api/symbols/btc/usdt/history")
        state.intraday_store.list_by_symbol.assert_awaited_once_with("BTC/USDT", limit=None)

    def test_daily_bars(self, client: TestClient, state: MagicMock) -> None:
        state.daily_store.list_by_symbol.return_value = [
            DailyBar(
                symbol="AAPL",
                date=date(2024, 3, 1),
                open_price=Decimal("100"),
                close_price=Decimal("110"),
                currency="USD",
                day_change_percent=Decimal("10"),
                volume=1200,
            )
        ]

        response = client.get("/api/symbols/AAPL/daily")

        assert response.json() == [
            {
                "symbol": "AAPL",
                "date": "2024-03-01",
                "open_price": "100",
                "close_price": "110",
                "currency": "USD",
                "day_change_percent": "10",
                "volume": 1200,
            }
        ]

    def test_trends_newest_first(self, client: TestClient, state: MagicMock) -> None:
        state.intraday_store.list_by_symbol.return_value = [
            _snapshot("103", 33),
            _snapshot("105", 32),
            _snapshot("100", 31),
        ]

        response = client.get("/api/symbols/AAPL/trends")

        body = response.json()
        assert [s["direction"] for s in body] == ["down", "up"]
        assert body[0]["start_price"] == "105"
        assert Decimal(body[1]["percent"]) == Decimal("5")

    def test_trends_need_two_snapshots(self, client: TestClient, state: MagicMock) -> None:
        state.intraday_store.list_by_symbol.return_value = [_snapshot("100", 30)]
        assert client.get("/api/symbols/AAPL/trends").json() == []


class TestBackfill:
    def test_manual_backfill(self, client: TestClient, state: MagicMock) -> None:
        response = client.post("/api/backfill", params={"lookback_days": 7})

        assert response.status_code == 200
        assert response.json() == {
            "total_bars_written": 5,
            "bars_written": {"AAPL": 5},
            "errors": {"NOPE": "No historical data for NOPE"},
        }
        state.orchestrator.run_backfill.assert_awaited_once_with(7)

    def test_rejects_non_positive_lookback(self, client: TestClient) -> None:
        response = client.post("/api/backfill", params={"lookback_days": 0})
        assert response.status_code == 422
