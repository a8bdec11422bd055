from decimal import Decimal
import asyncio

import pandas as pd
import pytest

from risk.portfolio_monitor import CSV_COLUMNS, PortfolioMonitor, SessionStats


def _open(monitor, mint="M1", price="1", amount="10", stop="0.9", take="1.5"):
    return monitor.open_position(mint, Decimal(price), Decimal(amount), Decimal(stop), Decimal(take),
                                 market_cap=Decimal("1000"), symbol="TKN")


def test_open_update_close_round_trip(clock):
    async def scenario():
        monitor = PortfolioMonitor(Decimal("100"), clock=clock)
        await _open(monitor)
        assert await monitor.has_position("M1")

        clock.advance(minutes=30)
        updated = await monitor.update_price("M1", Decimal("1.2"), Decimal("1200"))
        assert updated.unrealized_pnl == Decimal("2")
        assert updated.unrealized_pnl_pct == pytest.approx(20.0)
        assert updated.hold_time_minutes == 30

        clock.advance(minutes=15)
        trade = await monitor.close_position("M1", Decimal("1.5"), "Take Profit")
        return monitor, trade

    monitor, trade = asyncio.run(scenario())

    assert trade.pnl == Decimal("5")
    assert trade.pnl_pct == pytest.approx(50.0)
    assert trade.hold_time_minutes == 45
    assert trade.is_win
    assert trade.exit_market_cap == Decimal("1200")
    assert trade.exit_reason == "Take Profit"
    assert "M1" not in monitor.positions
    assert monitor.get_last_closed_trade() is trade


def test_readers_get_copies(clock):
    async def scenario():
        monitor = PortfolioMonitor(Decimal("100"), clock=clock)
        await _open(monitor)
        copy = await monitor.get_position("M1")
        copy.current_price = Decimal("999")
        return await monitor.get_position("M1")

    assert asyncio.run(scenario()).current_price == Decimal("1")


def test_invalid_entry_price_rejected(clock):
    monitor = PortfolioMonitor(Decimal("100"), clock=clock)
    with pytest.raises(ValueError):
        asyncio.run(_open(monitor, price="0"))


def test_closing_unknown_position_returns_none(clock):
    monitor = PortfolioMonitor(Decimal("100"), clock=clock)
    assert asyncio.run(monitor.close_position("nope", Decimal("1"))) is None
    assert monitor.stats.total_trades == 0


def test_session_stats(clock):
    async def scenario():
        monitor = PortfolioMonitor(Decimal("100"), clock=clock)
        for mint, exit_price in (("A", "1.5"), ("B", "0.8"), ("C", "1"), ("D", "1.2")):
            await _open(monitor, mint=mint)
            await monitor.close_position(mint, Decimal(exit_price))
        return await monitor.snapshot()

    stats = asyncio.run(scenario())

    assert stats.total_trades == 4
    assert stats.wins == 2
    # the break-even trade counts as a loss
    assert stats.losses == 2
    assert stats.win_rate == pytest.approx(50.0)
    assert stats.total_pnl == Decimal("5")
    assert stats.portfolio_value == Decimal("105")
    assert stats.biggest_win == Decimal("5")
    assert stats.biggest_loss == Decimal("-2")
    assert stats.avg_win == Decimal("3.5")
    assert stats.avg_loss == Decimal("-1")


def test_stats_start_at_capital():
    stats = SessionStats.starting_at(Decimal("10"))
    assert stats.starting_value == stats.portfolio_value == Decimal("10")
    assert stats.total_trades == 0


def test_committed_capital_and_bulk_update(clock):
    async def scenario():
        monitor = PortfolioMonitor(Decimal("100"), clock=clock)
        await _open(monitor, mint="A", amount="10")
        await _open(monitor, mint="B", amount="5")
        await monitor.update_prices({"A": (Decimal("2"), Decimal("0")), "ghost": (Decimal("1"), Decimal("0"))})
        return await monitor.committed_capital(), await monitor.get_all_positions()

    committed, positions = asyncio.run(scenario())

    assert committed == Decimal("15")
    assert positions["A"].unrealized_pnl == Decimal("10")
    assert positions["B"].unrealized_pnl == Decimal("0")


def test_closed_trades_appended_to_csv(tmp_path, clock):
    path = tmp_path / "trades" / "closed.csv"

    async def scenario():
        monitor = PortfolioMonitor(Decimal("100"), clock=clock, trades_csv_path=str(path))
        await _open(monitor)
        await monitor.close_position("M1", Decimal("0.5"), "Stop Loss")

    asyncio.run(scenario())

    frame = pd.read_csv(path)
    assert list(frame.columns) == CSV_COLUMNS
    assert len(frame) == 1
    assert frame.loc[0, "exit_reason"] == "Stop Loss"
    assert frame.loc[0, "pnl"] == pytest.approx(-5.0)


def test_stats_keep_exact_gross_totals(make_closed_trade):
    stats = SessionStats.starting_at(Decimal("10"))
    for pnl in ("1", "1", "2", "2", "-0.1", "-0.2", "-0.4"):
        stats.record(make_closed_trade(pnl=pnl))

    assert stats.gross_win == Decimal("6")
    assert stats.gross_loss == Decimal("-0.7")
    assert stats.avg_win == Decimal("1.5")
    assert stats.avg_loss == Decimal("-0.7") / 3
    assert stats.total_pnl == stats.gross_win + stats.gross_loss
