from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
import logging

from core.types import MarketSnapshot


class TradeAction(str, Enum):
    STRONG_BUY = "StrongBuy"
    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"
    STRONG_SELL = "StrongSell"

    @property
    def is_entry(self) -> bool:
        return self in (TradeAction.STRONG_BUY, TradeAction.BUY)


@dataclass(frozen=True)
class ChartSignal:
    action: TradeAction
    confidence: float
    reason: str
    suggested_entry: Decimal
    suggested_exit: Decimal


@dataclass(frozen=True)
class PatternRule:
    """One row of the price-action rule table"""
    name: str
    matches: Callable[[MarketSnapshot], bool]
    action: TradeAction
    confidence: float
    exit_multiplier: Optional[Decimal]   # None means exit at current price with no entry


def _strong_uptrend(s: MarketSnapshot) -> bool:
    return (s.price_change_5m > 5.0 and s.price_change_1h > 10.0 and s.price_change_24h > 20.0
            and s.volume_24h > s.liquidity_usd * 2)


def _healthy_pullback(s: MarketSnapshot) -> bool:
    return -5.0 < s.price_change_5m < -2.0 and s.price_change_24h > 10.0


def _consolidation_breakout(s: MarketSnapshot) -> bool:
    return (abs(s.price_change_5m) < 1.0 and abs(s.price_change_1h) < 2.0
            and s.volume_24h > s.liquidity_usd * Decimal("1.5"))


def _early_pump(s: MarketSnapshot) -> bool:
    return (s.price_change_5m > 8.0 and s.price_change_1h > 15.0 and s.price_change_24h < 30.0
            and s.volume_24h > s.liquidity_usd)


def _overbought(s: MarketSnapshot) -> bool:
    return s.price_change_5m > 20.0 and s.price_change_1h > 50.0


def _strong_downtrend(s: MarketSnapshot) -> bool:
    return s.price_change_5m < -5.0 and s.price_change_1h < -10.0 and s.price_change_24h < -15.0


def _volume_spike(s: MarketSnapshot) -> bool:
    return s.volume_24h > s.liquidity_usd * 3 and s.price_change_5m > 3.0


# Evaluated top to bottom, first match wins.
PATTERN_RULES: List[PatternRule] = [
    PatternRule("Strong uptrend + volume breakout", _strong_uptrend, TradeAction.STRONG_BUY, 0.85, Decimal("1.5")),
    PatternRule("Healthy pullback in uptrend", _healthy_pullback, TradeAction.BUY, 0.75, Decimal("1.3")),
    PatternRule("Consolidation breakout", _consolidation_breakout, TradeAction.BUY, 0.70, Decimal("1.25")),
    PatternRule("Early pump detected", _early_pump, TradeAction.STRONG_BUY, 0.80, Decimal("1.4")),
    PatternRule("Overbought - take profits", _overbought, TradeAction.SELL, 0.80, None),
    PatternRule("Strong downtrend - exit", _strong_downtrend, TradeAction.STRONG_SELL, 0.90, None),
    PatternRule("Unusual volume spike", _volume_spike, TradeAction.BUY, 0.75, Decimal("1.35")),
]

DEFAULT_REASON = "No clear pattern - waiting"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_EXIT_MULTIPLIER = Decimal("1.2")
SUPPORT_RESISTANCE_TOLERANCE = Decimal("0.02")


class ChartAnalyzer:
    def __init__(self, rules: Sequence[PatternRule] = None, logger: logging.Logger = None):
        self.rules = list(rules) if rules is not None else PATTERN_RULES
        self.logger = logger or logging.getLogger(__name__)

    def analyze_entry_exit(self, snapshot: MarketSnapshot) -> ChartSignal:
        """Classify a market snapshot with the first matching rule"""
        price = snapshot.price_usd
        for rule in self.rules:
            if not rule.matches(snapshot):
                continue
            if rule.exit_multiplier is None:
                signal = ChartSignal(rule.action, rule.confidence, rule.name, Decimal("0"), price)
            else:
                signal = ChartSignal(rule.action, rule.confidence, rule.name, price, price * rule.exit_multiplier)
            self.logger.debug(f"{snapshot.mint}: {signal.action.value} ({signal.reason})")
            return signal

        return ChartSignal(TradeAction.HOLD, DEFAULT_CONFIDENCE, DEFAULT_REASON, price, price * DEFAULT_EXIT_MULTIPLIER)


def calculate_rsi_approx(change_5m: float, change_1h: float, change_24h: float) -> float:
    """Rough RSI from three price-change windows. 100 when nothing went down."""
    changes = (change_5m, change_1h, change_24h)
    avg_gain = sum(c for c in changes if c > 0) / len(changes)
    avg_loss = sum(-c for c in changes if c < 0) / len(changes)

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def is_at_support_resistance(current_price: Decimal, recent_prices: Sequence[Decimal]) -> Tuple[bool, bool]:
    """(at_support, at_resistance) within 2% of a recent price below/above the current one"""
    at_support = False
    at_resistance = False
    for price in recent_prices:
        if price <= 0:
            continue
        close = abs(current_price - price) / price < SUPPORT_RESISTANCE_TOLERANCE
        if close and price < current_price:
            at_support = True
        elif close and price > current_price:
            at_resistance = True
    return at_support, at_resistance
