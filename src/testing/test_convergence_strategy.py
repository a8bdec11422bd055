from decimal import Decimal

import pytest

from core.types import TradeSide
from strategies.convergence_strategy import SignalType, SmartMoneyConvergenceStrategy


@pytest.fixture
def strategy():
    return SmartMoneyConvergenceStrategy(convergence_threshold=3, time_window_minutes=60)


def test_three_wallets_converge_on_one_asset(strategy, make_trade, make_analysis, now):
    wallets = {w: make_analysis(wallet=w, score=0.9) for w in ("a", "b", "c")}
    recent = {
        "a": [make_trade(wallet="a", mint="X", amount_in="1", minutes_ago=5),
              make_trade(wallet="a", mint="Y", minutes_ago=5)],
        "b": [make_trade(wallet="b", mint="X", amount_in="2", minutes_ago=10)],
        "c": [make_trade(wallet="c", mint="X", amount_in="3", minutes_ago=59),
              make_trade(wallet="c", mint="Y", minutes_ago=15)],
    }

    [signal] = strategy.generate_signals(wallets, recent, now)

    assert signal.mint == "X"
    assert signal.smart_wallets_count == 3
    assert signal.confidence == pytest.approx(0.95)
    assert signal.avg_smart_score == pytest.approx(0.9)
    assert signal.total_volume == Decimal("6")
    assert signal.signal_type == SignalType.SMART_MONEY_CONVERGENCE
    assert signal.detected_at == now
    assert set(signal.wallets) == {"a", "b", "c"}


def test_low_score_wallets_and_old_or_sell_trades_ignored(strategy, make_trade, make_analysis, now):
    wallets = {
        "a": make_analysis(wallet="a", score=0.9),
        "b": make_analysis(wallet="b", score=0.9),
        "c": make_analysis(wallet="c", score=0.79),
        "d": make_analysis(wallet="d", score=0.95),
    }
    recent = {
        "a": [make_trade(wallet="a", mint="X", minutes_ago=5)],
        "b": [make_trade(wallet="b", mint="X", minutes_ago=5)],
        "c": [make_trade(wallet="c", mint="X", minutes_ago=5)],
        "d": [make_trade(wallet="d", mint="X", minutes_ago=61),
              make_trade(wallet="d", mint="X", side=TradeSide.SELL, minutes_ago=1)],
    }

    assert strategy.generate_signals(wallets, recent, now) == []


def test_repeat_buys_by_one_wallet_count_once(strategy, make_trade, make_analysis, now):
    wallets = {w: make_analysis(wallet=w) for w in ("a", "b")}
    recent = {
        "a": [make_trade(wallet="a", mint="X", minutes_ago=m) for m in (1, 2, 3)],
        "b": [make_trade(wallet="b", mint="X", minutes_ago=4)],
    }

    assert strategy.generate_signals(wallets, recent, now) == []


def test_confidence_saturates_and_order_is_stable(make_trade, make_analysis, now):
    strategy = SmartMoneyConvergenceStrategy(convergence_threshold=2)
    names = ["a", "b", "c", "d", "e"]
    wallets = {w: make_analysis(wallet=w) for w in names}
    recent = {w: [make_trade(wallet=w, mint="BIG", minutes_ago=1)] for w in names}
    for w in ("a", "b"):
        recent[w].append(make_trade(wallet=w, mint="ZED", minutes_ago=1))
        recent[w].append(make_trade(wallet=w, mint="ALP", minutes_ago=1))

    signals = strategy.generate_signals(wallets, recent, now)

    assert [s.mint for s in signals] == ["BIG", "ALP", "ZED"]
    assert signals[0].confidence == pytest.approx(1.0)
    assert signals[1].confidence == pytest.approx(0.9)


def test_hot_wallets(strategy, make_analysis):
    wallets = {
        "hot": make_analysis(wallet="hot", score=0.9, win_rate=85.0, trades_24h=3),
        "slow": make_analysis(wallet="slow", score=0.9, win_rate=85.0, trades_24h=2),
        "meh": make_analysis(wallet="meh", score=0.85, win_rate=85.0, trades_24h=5),
        "lucky": make_analysis(wallet="lucky", score=0.95, win_rate=80.0, trades_24h=5),
    }

    assert strategy.find_hot_wallets(wallets) == ["hot"]
