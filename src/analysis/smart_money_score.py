"""
Heuristic wallet scoring.

Scores are best-effort classifications built from a handful of fixed
thresholds. They are not statistically validated and should be read as a
ranking aid, not as ground truth about a wallet.
"""
from decimal import Decimal
import math

from core.types import WalletAnalysis, WalletMetrics

WHALE_VOLUME_THRESHOLD = Decimal("100000")
INSIDER_AVG_PROFIT_THRESHOLD = Decimal("1000")
INSIDER_MIN_TRADES = 10
INSIDER_WIN_RATE = 80.0


def _clamp(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def calculate_smart_money_score(metrics: WalletMetrics) -> float:
    score = 0.0

    win_rate = metrics.win_rate
    if not math.isnan(win_rate):
        score += win_rate / 100.0 * 0.4

    if metrics.total_pnl > 0:
        score += 0.2

    sharpe = metrics.sharpe_ratio
    if sharpe is not None and not math.isnan(sharpe):
        score += 0.2 * min(abs(sharpe), 2.0) / 2.0

    if metrics.max_drawdown < 20.0:
        score += 0.1

    if metrics.trades_last_7d >= 5:
        score += 0.1

    return _clamp(score)


def calculate_risk_score(metrics: WalletMetrics) -> float:
    risk = 0.0

    if metrics.max_drawdown > 50.0:
        risk += 0.3
    elif metrics.max_drawdown > 30.0:
        risk += 0.2

    if metrics.win_rate < 40.0:
        risk += 0.3

    if metrics.total_pnl < 0:
        risk += 0.2

    # erratic activity
    if metrics.trades_last_24h > 50:
        risk += 0.2

    return _clamp(risk)


def detect_insider_likelihood(metrics: WalletMetrics) -> bool:
    if metrics.win_rate > INSIDER_WIN_RATE and metrics.total_trades >= INSIDER_MIN_TRADES:
        return True
    return metrics.avg_profit_per_trade > INSIDER_AVG_PROFIT_THRESHOLD


def is_whale(metrics: WalletMetrics) -> bool:
    return metrics.volume_7d > WHALE_VOLUME_THRESHOLD


class SmartMoneyScorer:
    """Re-ranks an analyzed wallet using its whale flag and risk score"""

    def __init__(self, whale_bonus: float = 0.1, risk_penalty: float = 0.2):
        self.whale_bonus = whale_bonus
        self.risk_penalty = risk_penalty

    def score_wallet(self, analysis: WalletAnalysis) -> float:
        score = analysis.smart_money_score
        if analysis.is_whale:
            score += self.whale_bonus
        score -= analysis.risk_score * self.risk_penalty
        return _clamp(score)
