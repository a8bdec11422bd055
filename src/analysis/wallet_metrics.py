from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

from analysis.pattern_recognition import detect_patterns
from analysis.position_builder import closed_positions, group_trades_into_positions
from analysis.smart_money_score import (
    calculate_risk_score,
    calculate_smart_money_score,
    detect_insider_likelihood,
    is_whale,
)
from core.types import Position, TradeEvent, WalletAnalysis, WalletMetrics

logger = logging.getLogger(__name__)

PREFERRED_TOKENS_LIMIT = 10


def calculate_sharpe_ratio(pnl_values: Sequence[Decimal]) -> Optional[float]:
    """Mean over population std of per-position PnL. None when there is no data."""
    if not pnl_values:
        return None
    values = np.array([float(v) for v in pnl_values])
    std = values.std()
    if std == 0:
        return 0.0
    return float(values.mean() / std)


def calculate_max_drawdown(pnl_values: Sequence[Decimal]) -> float:
    """Largest percentage drop of cumulative PnL below its running peak"""
    cumulative = Decimal("0")
    peak = Decimal("0")
    max_dd = 0.0

    for pnl in pnl_values:
        cumulative += pnl
        if cumulative > peak:
            peak = cumulative
        if peak > 0:
            drawdown = float((peak - cumulative) / peak * 100)
            max_dd = max(max_dd, drawdown)

    return max_dd


def calculate_window_stats(trades: Sequence[TradeEvent], now: datetime, window: timedelta) -> Tuple[int, Decimal]:
    cutoff = now - window
    recent = [t for t in trades if t.timestamp >= cutoff]
    return len(recent), sum((t.amount_in for t in recent), Decimal("0"))


def calculate_metrics(positions: Sequence[Position], trades: Sequence[TradeEvent], now: datetime) -> WalletMetrics:
    """
    Summarize closed positions and recent trade volume into WalletMetrics.

    Never raises on well-formed input: an empty history yields default metrics.
    """
    closed = closed_positions(positions)
    pnl_values = [p.pnl for p in closed]

    winning = [pnl for pnl in pnl_values if pnl > 0]
    losing = [pnl for pnl in pnl_values if pnl < 0]
    total_trades = len(closed)
    total_pnl = sum(pnl_values, Decimal("0"))

    hold_times = [p.hold_time_seconds for p in closed if p.hold_time_seconds is not None]
    pnl_pcts = [float(p.pnl_pct) for p in closed if p.pnl_pct is not None]

    trades_24h, volume_24h = calculate_window_stats(trades, now, timedelta(hours=24))
    trades_7d, volume_7d = calculate_window_stats(trades, now, timedelta(days=7))

    return WalletMetrics(
        total_trades=total_trades,
        winning_trades=len(winning),
        losing_trades=len(losing),
        win_rate=len(winning) / total_trades * 100 if total_trades else 0.0,
        total_pnl=total_pnl,
        total_pnl_percentage=float(np.mean(pnl_pcts)) if pnl_pcts else 0.0,
        avg_profit_per_trade=total_pnl / total_trades if total_trades else Decimal("0"),
        avg_hold_time_seconds=sum(hold_times) // len(hold_times) if hold_times else 0,
        largest_win=max(winning, default=Decimal("0")),
        largest_loss=min(losing, default=Decimal("0")),
        sharpe_ratio=calculate_sharpe_ratio(pnl_values),
        max_drawdown=calculate_max_drawdown(pnl_values),
        trades_last_24h=trades_24h,
        trades_last_7d=trades_7d,
        volume_24h=volume_24h,
        volume_7d=volume_7d,
    )


def analyze_entry_exit_patterns(positions: Sequence[Position]):
    """Market-cap ranges (min, max) at entry and exit over profitable closed positions"""
    winners = [p for p in positions if p.is_closed and p.pnl > 0]
    entry_caps = [p.entry_market_cap for p in winners if p.entry_market_cap is not None]
    exit_caps = [p.exit_market_cap for p in winners if p.exit_market_cap is not None]

    entry_range = (min(entry_caps), max(entry_caps)) if entry_caps else None
    exit_range = (min(exit_caps), max(exit_caps)) if exit_caps else None
    return entry_range, exit_range


def preferred_tokens(trades: Sequence[TradeEvent], limit: int = PREFERRED_TOKENS_LIMIT) -> List[str]:
    return [mint for mint, _ in Counter(t.mint for t in trades).most_common(limit)]


def build_wallet_analysis(wallet: str, trades: Sequence[TradeEvent], now: datetime) -> WalletAnalysis:
    """Rebuild a wallet's full profile from its raw trades"""
    positions = group_trades_into_positions(trades)
    metrics = calculate_metrics(positions, trades, now)
    entry_range, exit_range = analyze_entry_exit_patterns(positions)

    analysis = WalletAnalysis(
        wallet=wallet,
        metrics=metrics,
        smart_money_score=calculate_smart_money_score(metrics),
        risk_score=calculate_risk_score(metrics),
        is_insider=detect_insider_likelihood(metrics),
        is_whale=is_whale(metrics),
        typical_hold_time_seconds=metrics.avg_hold_time_seconds,
        analyzed_at=now,
        best_entry_market_cap_range=entry_range,
        best_exit_market_cap_range=exit_range,
        preferred_tokens=preferred_tokens(trades),
        trading_patterns=detect_patterns(positions),
    )
    logger.debug(
        f"Analyzed {wallet}: trades={metrics.total_trades}, win_rate={metrics.win_rate:.1f}%, "
        f"score={analysis.smart_money_score:.2f}, risk={analysis.risk_score:.2f}"
    )
    return analysis
