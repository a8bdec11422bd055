from decimal import Decimal
import asyncio

from core.errors import ExecutionError, FetchError, RateLimitExceeded
from risk.portfolio_monitor import PortfolioMonitor
from risk.position_manager import PositionManager
from strategies.copy_trading_strategy import CopyTradingStrategy


class StubMarketData:
    def __init__(self, snapshots=None, failures=None):
        self.snapshots = snapshots or {}
        self.failures = failures or {}
        self.calls = []

    async def fetch_market_snapshot(self, mint):
        self.calls.append(mint)
        if mint in self.failures:
            raise self.failures[mint]
        return self.snapshots[mint]


class FailingExecutor:
    def sell_token(self, mint, amount, price):
        raise ExecutionError("venue down")


async def _portfolio_with(clock, *mints):
    portfolio = PortfolioMonitor(Decimal("100"), clock=clock)
    for mint in mints:
        await portfolio.open_position(mint, Decimal("1"), Decimal("10"), Decimal("0.9"), Decimal("1.5"))
    return portfolio


def test_fetch_failure_is_isolated(clock, make_snapshot):
    market = StubMarketData(
        snapshots={"B": make_snapshot(mint="B", price="2")},
        failures={"A": RateLimitExceeded("429"), "C": FetchError("no pairs")},
    )
    manager = PositionManager(market, CopyTradingStrategy())

    async def scenario():
        portfolio = await _portfolio_with(clock, "A", "B", "C")
        closed = await manager.check_and_update_positions(portfolio)
        return portfolio, closed

    portfolio, closed = asyncio.run(scenario())

    assert market.calls == ["A", "B", "C"]
    assert [t.mint for t in closed] == ["B"]
    assert closed[0].exit_reason == "Take Profit"
    assert set(portfolio.positions) == {"A", "C"}
    assert portfolio.positions["A"].current_price == Decimal("1")


def test_stop_loss_exit_at_quoted_price(clock, make_snapshot):
    market = StubMarketData(snapshots={"A": make_snapshot(mint="A", price="0.85")})
    manager = PositionManager(market, CopyTradingStrategy())

    async def scenario():
        portfolio = await _portfolio_with(clock, "A")
        return await manager.check_and_update_positions(portfolio)

    [trade] = asyncio.run(scenario())

    assert trade.exit_reason == "Stop Loss"
    assert trade.exit_price == Decimal("0.85")
    assert trade.pnl == Decimal("-1.5")


def test_position_kept_when_nothing_fires(clock, make_snapshot):
    market = StubMarketData(snapshots={"A": make_snapshot(mint="A", price="1.1")})
    manager = PositionManager(market, CopyTradingStrategy())

    async def scenario():
        portfolio = await _portfolio_with(clock, "A")
        closed = await manager.check_and_update_positions(portfolio)
        return portfolio, closed

    portfolio, closed = asyncio.run(scenario())

    assert closed == []
    assert portfolio.positions["A"].current_price == Decimal("1.1")
    assert portfolio.positions["A"].unrealized_pnl == Decimal("1")


def test_failed_exit_keeps_position_open(clock, make_snapshot):
    market = StubMarketData(snapshots={"A": make_snapshot(mint="A", price="0.5")})
    manager = PositionManager(market, CopyTradingStrategy(), executor=FailingExecutor())

    async def scenario():
        portfolio = await _portfolio_with(clock, "A")
        closed = await manager.check_and_update_positions(portfolio)
        return portfolio, closed

    portfolio, closed = asyncio.run(scenario())

    assert closed == []
    assert "A" in portfolio.positions
