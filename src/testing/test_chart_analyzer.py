from decimal import Decimal

import pytest

from analysis.chart_analyzer import (
    ChartAnalyzer,
    TradeAction,
    calculate_rsi_approx,
    is_at_support_resistance,
)


@pytest.fixture
def analyzer():
    return ChartAnalyzer()


def test_first_matching_rule_wins(analyzer, make_snapshot):
    # also satisfies the early pump and volume spike rules
    snapshot = make_snapshot(price="2", change_5m=6, change_1h=12, change_24h=25, volume="3000", liquidity="1000")

    signal = analyzer.analyze_entry_exit(snapshot)

    assert signal.action == TradeAction.STRONG_BUY
    assert signal.confidence == 0.85
    assert signal.reason == "Strong uptrend + volume breakout"
    assert signal.suggested_entry == Decimal("2")
    assert signal.suggested_exit == Decimal("3.0")


@pytest.mark.parametrize("kwargs, action, confidence, multiplier", [
    (dict(change_5m=-3, change_1h=0, change_24h=15), TradeAction.BUY, 0.75, Decimal("1.3")),
    (dict(change_5m=0.5, change_1h=-1, volume="1600"), TradeAction.BUY, 0.70, Decimal("1.25")),
    (dict(change_5m=9, change_1h=16, change_24h=25, volume="1100"), TradeAction.STRONG_BUY, 0.80, Decimal("1.4")),
    (dict(change_5m=4, change_1h=2, volume="3100"), TradeAction.BUY, 0.75, Decimal("1.35")),
])
def test_entry_rules(analyzer, make_snapshot, kwargs, action, confidence, multiplier):
    signal = analyzer.analyze_entry_exit(make_snapshot(price="1", liquidity="1000", **kwargs))

    assert signal.action == action
    assert signal.confidence == confidence
    assert signal.suggested_entry == Decimal("1")
    assert signal.suggested_exit == multiplier


def test_overbought_is_sell_with_no_entry(analyzer, make_snapshot):
    signal = analyzer.analyze_entry_exit(make_snapshot(price="5", change_5m=25, change_1h=60, change_24h=200))

    assert signal.action == TradeAction.SELL
    assert signal.confidence == 0.80
    assert signal.suggested_entry == Decimal("0")
    assert signal.suggested_exit == Decimal("5")


def test_strong_downtrend(analyzer, make_snapshot):
    signal = analyzer.analyze_entry_exit(make_snapshot(change_5m=-6, change_1h=-12, change_24h=-20))

    assert signal.action == TradeAction.STRONG_SELL
    assert signal.confidence == 0.90
    assert signal.suggested_entry == Decimal("0")


def test_default_hold(analyzer, make_snapshot):
    signal = analyzer.analyze_entry_exit(make_snapshot(price="10", change_5m=2, change_1h=5, change_24h=5))

    assert signal.action == TradeAction.HOLD
    assert signal.confidence == 0.5
    assert signal.reason == "No clear pattern - waiting"
    assert signal.suggested_entry == Decimal("10")
    assert signal.suggested_exit == Decimal("12.0")


def test_rsi_approximation():
    assert calculate_rsi_approx(1, 2, 3) == 100.0
    assert calculate_rsi_approx(-1, -2, -3) == pytest.approx(0.0)
    assert calculate_rsi_approx(3, -1, -2) == pytest.approx(50.0)


def test_support_resistance():
    prices = [Decimal("0.99"), Decimal("1.5")]
    assert is_at_support_resistance(Decimal("1.0"), prices) == (True, False)
    assert is_at_support_resistance(Decimal("1.48"), prices) == (False, True)
    assert is_at_support_resistance(Decimal("1.2"), prices) == (False, False)
    assert is_at_support_resistance(Decimal("1.0"), []) == (False, False)
