from decimal import Decimal
import asyncio

import pytest

from core.errors import ExecutionError
from core.types import RiskLevel, SecurityInfo
from execution.dry_run_executor import DryRunExecutor
from risk.portfolio_monitor import PortfolioMonitor
from risk.risk_manager import RiskManager
from utils.config import RiskParameters


def _risk(**kwargs):
    return RiskManager(RiskParameters(**kwargs))


def _open(portfolio, mint, amount="10"):
    return portfolio.open_position(mint, Decimal("1"), Decimal(amount), Decimal("0.9"), Decimal("1.5"))


def test_enter_when_capital_available(clock):
    risk = _risk(position_size=Decimal("10"))
    portfolio = PortfolioMonitor(Decimal("100"), clock=clock)

    assert asyncio.run(risk.can_enter_position("A", portfolio)) == (True, Decimal("10"))


def test_rejects_held_asset(clock):
    risk = _risk()

    async def scenario():
        portfolio = PortfolioMonitor(Decimal("100"), clock=clock)
        await _open(portfolio, "A")
        return await risk.can_enter_position("A", portfolio)

    assert asyncio.run(scenario()) == (False, Decimal("0"))


def test_rejects_at_max_positions(clock):
    risk = _risk(max_positions=2, position_size=Decimal("1"))

    async def scenario():
        portfolio = PortfolioMonitor(Decimal("100"), clock=clock)
        await _open(portfolio, "A", "1")
        await _open(portfolio, "B", "1")
        return await risk.can_enter_position("C", portfolio)

    assert asyncio.run(scenario())[0] is False


def test_default_capital_allows_one_position(clock):
    risk = _risk()

    async def scenario():
        portfolio = PortfolioMonitor(Decimal("10"), clock=clock)
        first = await risk.can_enter_position("A", portfolio)
        await _open(portfolio, "A")
        second = await risk.can_enter_position("B", portfolio)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == (True, Decimal("10"))
    assert second == (False, Decimal("0"))


def test_stop_loss_below_entry():
    assert _risk().calculate_stop_loss(Decimal("2")) == Decimal("1.8")


@pytest.mark.parametrize("info, expected", [
    (SecurityInfo(mint="A"), (True, "")),
    (SecurityInfo(mint="A", is_scam=True, risk_level=RiskLevel.CRITICAL), (False, "scam")),
    (SecurityInfo(mint="A", is_bundle=True), (False, "bundle")),
])
def test_security_gate(info, expected):
    assert _risk().check_security(info) == expected


def test_dry_run_fills():
    executor = DryRunExecutor(slippage_bps=100)

    buy = executor.buy_token("A", Decimal("10"), Decimal("2"))
    sell = executor.sell_token("A", Decimal("10"), Decimal("2"))

    assert buy.execution_price == Decimal("2.02")
    assert sell.execution_price == Decimal("1.98")
    assert buy.tx_sig.startswith("paper-")
    assert buy.side == "BUY" and sell.side == "SELL"


def test_dry_run_rejects_bad_quotes():
    executor = DryRunExecutor()
    with pytest.raises(ExecutionError):
        executor.buy_token("A", Decimal("10"), Decimal("0"))
    with pytest.raises(ExecutionError):
        executor.sell_token("A", Decimal("0"), Decimal("1"))
