from datetime import datetime, timedelta, timezone
from decimal import Decimal
import itertools

import pytest

from core.types import MarketSnapshot, TradeEvent, TradeSide, WalletAnalysis, WalletMetrics
from risk.portfolio_monitor import ClosedTrade

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_trade():
    counter = itertools.count()

    def _make(wallet="w1", mint="M1", side=TradeSide.BUY, amount_in="10", amount_out="100",
              minutes_ago=0, at=None, market_cap="0"):
        n = next(counter)
        return TradeEvent(
            wallet=wallet,
            mint=mint,
            side=side,
            amount_in=Decimal(amount_in),
            amount_out=Decimal(amount_out),
            price=Decimal("0.1"),
            timestamp=at or NOW - timedelta(minutes=minutes_ago),
            signature=f"sig{n}",
            market_cap=Decimal(market_cap),
        )
    return _make


@pytest.fixture
def make_analysis():
    def _make(wallet="w1", score=0.9, win_rate=90.0, trades_24h=5, risk=0.0):
        return WalletAnalysis(
            wallet=wallet,
            metrics=WalletMetrics(total_trades=10, win_rate=win_rate, trades_last_24h=trades_24h),
            smart_money_score=score,
            risk_score=risk,
            is_insider=False,
            is_whale=False,
            typical_hold_time_seconds=0,
            analyzed_at=NOW,
        )
    return _make


@pytest.fixture
def make_snapshot():
    def _make(mint="M1", price="1", change_5m=0.0, change_1h=0.0, change_24h=0.0,
              volume="0", liquidity="1000", symbol="TKN"):
        return MarketSnapshot(
            mint=mint,
            price_usd=Decimal(price),
            market_cap=Decimal(liquidity) * 2,
            liquidity_usd=Decimal(liquidity),
            volume_24h=Decimal(volume),
            price_change_5m=change_5m,
            price_change_1h=change_1h,
            price_change_24h=change_24h,
            symbol=symbol,
        )
    return _make


@pytest.fixture
def make_closed_trade():
    def _make(entry="1", exit="2", pnl=None, pnl_pct=None, hold=60, mint="M1", amount="10"):
        entry_price, exit_price, size = Decimal(entry), Decimal(exit), Decimal(amount)
        if pnl is None:
            pnl = (exit_price - entry_price) * size / entry_price
        if pnl_pct is None:
            pnl_pct = float((exit_price - entry_price) / entry_price * 100)
        return ClosedTrade(
            mint=mint,
            symbol="TKN",
            entry_time=NOW,
            exit_time=NOW + timedelta(minutes=hold),
            entry_price=entry_price,
            exit_price=exit_price,
            amount=size,
            pnl=Decimal(pnl),
            pnl_pct=pnl_pct,
            hold_time_minutes=hold,
            is_win=Decimal(pnl) > 0,
            exit_reason="Take Profit",
        )
    return _make
