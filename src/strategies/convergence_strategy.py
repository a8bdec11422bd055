from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Sequence, Tuple
import logging

from core.types import TradeEvent, WalletAnalysis


class SignalType(str, Enum):
    SMART_MONEY_CONVERGENCE = "SmartMoneyConvergence"
    HOT_WALLET_TRADE = "HotWalletTrade"
    VOLUME_BREAKOUT = "VolumeBreakout"
    CHART_PATTERN = "ChartPattern"


@dataclass(frozen=True)
class UltraSignal:
    mint: str
    confidence: float
    smart_wallets_count: int
    avg_smart_score: float
    total_volume: Decimal
    signal_type: SignalType
    detected_at: datetime
    wallets: Tuple[str, ...] = ()


@dataclass
class _AssetActivity:
    wallets: Dict[str, float] = field(default_factory=dict)  # wallet -> smart score, insertion ordered
    total_volume: Decimal = Decimal("0")


class SmartMoneyConvergenceStrategy:
    """Finds assets that several high-scoring wallets bought inside a short window"""

    def __init__(self,
                 convergence_threshold: int = 3,
                 time_window_minutes: int = 60,
                 min_smart_score: float = 0.8,
                 hot_min_trades_24h: int = 3,
                 hot_min_win_rate: float = 80.0,
                 hot_min_score: float = 0.85,
                 logger: logging.Logger = None):
        self.convergence_threshold = convergence_threshold
        self.time_window = timedelta(minutes=time_window_minutes)
        self.min_smart_score = min_smart_score
        self.hot_min_trades_24h = hot_min_trades_24h
        self.hot_min_win_rate = hot_min_win_rate
        self.hot_min_score = hot_min_score
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def confidence_for(wallet_count: int) -> float:
        return 0.8 + min(wallet_count * 0.05, 0.2)

    def generate_signals(self,
                         wallets: Mapping[str, WalletAnalysis],
                         recent_trades: Mapping[str, Sequence[TradeEvent]],
                         now: datetime) -> List[UltraSignal]:
        """
        Emit one UltraSignal per asset bought by at least `convergence_threshold`
        distinct qualifying wallets since `now - time_window`.

        Signals are ordered by confidence descending, then mint ascending.
        """
        cutoff = now - self.time_window
        activity: Dict[str, _AssetActivity] = {}

        for wallet, trades in recent_trades.items():
            analysis = wallets.get(wallet)
            if analysis is None or analysis.smart_money_score < self.min_smart_score:
                continue

            for trade in trades:
                if not trade.is_buy or trade.timestamp < cutoff:
                    continue
                asset = activity.setdefault(trade.mint, _AssetActivity())
                asset.wallets[wallet] = analysis.smart_money_score
                asset.total_volume += trade.amount_in

        signals = []
        for mint, asset in activity.items():
            wallet_count = len(asset.wallets)
            if wallet_count < self.convergence_threshold:
                continue
            signals.append(UltraSignal(
                mint=mint,
                confidence=self.confidence_for(wallet_count),
                smart_wallets_count=wallet_count,
                avg_smart_score=sum(asset.wallets.values()) / wallet_count,
                total_volume=asset.total_volume,
                signal_type=SignalType.SMART_MONEY_CONVERGENCE,
                detected_at=now,
                wallets=tuple(asset.wallets),
            ))

        signals.sort(key=lambda s: (-s.confidence, s.mint))
        if signals:
            self.logger.info(f"Detected {len(signals)} convergence signals")
        return signals

    def is_hot_wallet(self, analysis: WalletAnalysis) -> bool:
        return (analysis.metrics.trades_last_24h >= self.hot_min_trades_24h
                and analysis.metrics.win_rate > self.hot_min_win_rate
                and analysis.smart_money_score > self.hot_min_score)

    def find_hot_wallets(self, wallets: Mapping[str, WalletAnalysis]) -> List[str]:
        return sorted(wallet for wallet, analysis in wallets.items() if self.is_hot_wallet(analysis))
