from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional
import logging

from analysis.chart_analyzer import ChartSignal, TradeAction
from risk.portfolio_monitor import OpenPosition
from strategies.convergence_strategy import UltraSignal


@dataclass
class Signal:
    is_valid: bool
    reason: str = None
    confidence: float = 0.0


class ExitReason(str, Enum):
    STOP_LOSS = "Stop Loss"
    TAKE_PROFIT = "Take Profit"
    CHART_SELL = "Chart Sell Signal"
    TIME_EXIT = "Time Exit"
    TRAILING_STOP = "Trailing Stop"


class CopyTradingStrategy:
    """Decides entries from convergence + chart signals and exits for open positions"""

    def __init__(self,
                 min_signal_confidence: float = 0.85,
                 min_combined_confidence: float = 0.75,
                 chart_sell_min_pnl_pct: float = 15.0,
                 max_hold_minutes: int = 24 * 60,
                 time_exit_max_pnl_pct: float = 5.0,
                 trailing_min_pnl_pct: float = 30.0,
                 trailing_factor: Decimal = Decimal("0.85"),
                 logger: logging.Logger = None):
        self.min_signal_confidence = min_signal_confidence
        self.min_combined_confidence = min_combined_confidence
        self.chart_sell_min_pnl_pct = chart_sell_min_pnl_pct
        self.max_hold_minutes = max_hold_minutes
        self.time_exit_max_pnl_pct = time_exit_max_pnl_pct
        self.trailing_min_pnl_pct = trailing_min_pnl_pct
        self.trailing_factor = trailing_factor
        self.logger = logger or logging.getLogger(__name__)

    def should_evaluate(self, ultra: UltraSignal) -> bool:
        """Only high-confidence convergence signals are worth a market/security lookup"""
        return ultra.confidence > self.min_signal_confidence

    def generate_signal(self, ultra: UltraSignal, chart: ChartSignal) -> Signal:
        try:
            if not chart.action.is_entry:
                return Signal(is_valid=False, reason=f"chart says {chart.action.value}")

            combined = (ultra.confidence + chart.confidence) / 2
            if combined <= self.min_combined_confidence:
                return Signal(is_valid=False, reason="combined confidence too low", confidence=combined)

            return Signal(is_valid=True, reason=chart.reason, confidence=combined)
        except Exception as e:
            self.logger.error(f"Strategy - Error in generate_signal: {str(e)}")
            return Signal(is_valid=False)

    def check_exit(self, position: OpenPosition, chart: Optional[ChartSignal]) -> Optional[ExitReason]:
        """First exit rule that fires, in priority order, or None to keep holding"""
        price = position.current_price
        pnl_pct = position.unrealized_pnl_pct

        if price <= position.stop_loss:
            return ExitReason.STOP_LOSS

        if price >= position.take_profit:
            return ExitReason.TAKE_PROFIT

        if chart is not None:
            if chart.action == TradeAction.STRONG_SELL:
                return ExitReason.CHART_SELL
            if chart.action == TradeAction.SELL and pnl_pct > self.chart_sell_min_pnl_pct:
                return ExitReason.CHART_SELL

        if position.hold_time_minutes > self.max_hold_minutes and pnl_pct < self.time_exit_max_pnl_pct:
            return ExitReason.TIME_EXIT

        if pnl_pct > self.trailing_min_pnl_pct and price <= position.take_profit * self.trailing_factor:
            return ExitReason.TRAILING_STOP

        return None
