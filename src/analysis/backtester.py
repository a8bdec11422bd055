from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Sequence
import json
import logging
import math

import numpy as np
import pandas as pd

from core.errors import BacktestError
from risk.portfolio_monitor import ClosedTrade

TRADES_PER_YEAR = 365


@dataclass
class BacktestConfig:
    starting_capital: Decimal = Decimal("100")
    position_size: Decimal = Decimal("10")
    max_positions: int = 5
    # Recorded for the report only, trades are not re-exited
    stop_loss_pct: float = 10.0
    take_profit_pct: float = 50.0


@dataclass(frozen=True)
class BacktestTrade:
    symbol: str
    mint: str
    entry_time: datetime
    exit_time: datetime
    entry_price: Decimal
    exit_price: Decimal
    pnl: Decimal
    pnl_pct: float
    hold_time_minutes: int
    is_win: bool


@dataclass
class BacktestResults:
    starting_capital: Decimal
    ending_capital: Decimal
    total_pnl: Decimal
    roi_pct: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate_pct: float
    avg_win: Decimal
    avg_loss: Decimal
    biggest_win: Decimal
    biggest_loss: Decimal
    max_drawdown_pct: float
    profit_factor: float
    sharpe_ratio: float
    avg_hold_time_minutes: int
    trades: List[BacktestTrade] = field(default_factory=list)

    def get_strategy_rating(self) -> str:
        score = sum([
            self.win_rate_pct > 60.0,
            self.roi_pct > 20.0,
            self.profit_factor > 1.5,
            self.sharpe_ratio > 1.0,
            self.max_drawdown_pct < 20.0,
        ])
        labels = {5: "EXCELLENT", 4: "GOOD", 3: "AVERAGE", 2: "BELOW AVERAGE"}
        return f"{max(score, 1)}/5 {labels.get(score, 'NEEDS IMPROVEMENT')}"

    def to_dict(self) -> Dict[str, Any]:
        def convert(value):
            if isinstance(value, Decimal):
                return str(value)
            if isinstance(value, datetime):
                return value.isoformat()
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value
        return convert(asdict(self))

    def save_to_file(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([asdict(t) for t in self.trades])
        if not df.empty:
            for col in ("entry_price", "exit_price", "pnl"):
                df[col] = df[col].astype(float)
            df["cumulative_pnl"] = df["pnl"].cumsum()
            df["capital"] = float(self.starting_capital) + df["cumulative_pnl"]
        return df

    def log_report(self, logger: logging.Logger) -> None:
        logger.info("Backtest results")
        logger.info(f"  Capital: {self.starting_capital} -> {self.ending_capital} "
                    f"(PnL {self.total_pnl}, ROI {self.roi_pct:.2f}%)")
        logger.info(f"  Trades: {self.total_trades} ({self.winning_trades} wins / {self.losing_trades} losses, "
                    f"win rate {self.win_rate_pct:.1f}%)")
        logger.info(f"  Avg win {self.avg_win}, avg loss {self.avg_loss}, "
                    f"biggest win {self.biggest_win}, biggest loss {self.biggest_loss}")
        logger.info(f"  Max drawdown {self.max_drawdown_pct:.2f}%, profit factor {self.profit_factor:.2f}, "
                    f"Sharpe {self.sharpe_ratio:.2f}, avg hold {self.avg_hold_time_minutes}min")
        logger.info(f"  Rating: {self.get_strategy_rating()}")


def annualized_sharpe(returns: Sequence[float]) -> float:
    """Per-trade returns annualized at 365 trades a year, sample std. 0 below two trades."""
    if len(returns) < 2:
        return 0.0
    values = np.array(returns, dtype=float)
    std = values.std(ddof=1)
    if std == 0 or math.isnan(std):
        return 0.0
    return float(values.mean() * TRADES_PER_YEAR / (std * math.sqrt(TRADES_PER_YEAR)))


class Backtester:
    """Replays a closed-trade ledger with a fixed what-if position size"""

    def __init__(self, config: BacktestConfig = None, logger: logging.Logger = None):
        self.config = config or BacktestConfig()
        self.logger = logger or logging.getLogger(__name__)

    def simulate_trade(self, trade: ClosedTrade) -> BacktestTrade:
        pnl = (trade.exit_price - trade.entry_price) / trade.entry_price * self.config.position_size
        return BacktestTrade(
            symbol=trade.symbol,
            mint=trade.mint,
            entry_time=trade.entry_time,
            exit_time=trade.exit_time,
            entry_price=trade.entry_price,
            exit_price=trade.exit_price,
            pnl=pnl,
            pnl_pct=trade.pnl_pct,
            hold_time_minutes=trade.hold_time_minutes,
            is_win=pnl > 0,
        )

    def run(self, closed_trades: Sequence[ClosedTrade]) -> BacktestResults:
        if not closed_trades:
            raise BacktestError("No historical trades to backtest")

        self.logger.info(f"Starting backtest with {len(closed_trades)} historical trades")
        starting_capital = self.config.starting_capital
        capital = starting_capital
        peak = capital
        max_drawdown = 0.0
        trades: List[BacktestTrade] = []

        for closed in closed_trades:
            if closed.entry_price <= 0:
                self.logger.warning(f"Skipping {closed.symbol} ({closed.mint}): entry price {closed.entry_price}")
                continue
            trade = self.simulate_trade(closed)
            capital += trade.pnl
            if capital > peak:
                peak = capital
            elif peak > 0:
                max_drawdown = max(max_drawdown, float((peak - capital) / peak * 100))
            trades.append(trade)

        if not trades:
            raise BacktestError("No valid historical trades to backtest")

        wins = [t.pnl for t in trades if t.is_win]
        losses = [t.pnl for t in trades if not t.is_win]
        gross_profit = sum(wins, Decimal("0"))
        gross_loss = sum(losses, Decimal("0"))
        total_pnl = capital - starting_capital

        return BacktestResults(
            starting_capital=starting_capital,
            ending_capital=capital,
            total_pnl=total_pnl,
            roi_pct=float(total_pnl / starting_capital * 100) if starting_capital > 0 else 0.0,
            total_trades=len(trades),
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate_pct=len(wins) / len(trades) * 100,
            avg_win=gross_profit / len(wins) if wins else Decimal("0"),
            avg_loss=gross_loss / len(losses) if losses else Decimal("0"),
            biggest_win=max(wins, default=Decimal("0")),
            biggest_loss=min(losses, default=Decimal("0")),
            max_drawdown_pct=max_drawdown,
            profit_factor=float(gross_profit / abs(gross_loss)) if gross_loss < 0 else 0.0,
            sharpe_ratio=annualized_sharpe([t.pnl_pct for t in trades]),
            avg_hold_time_minutes=sum(t.hold_time_minutes for t in trades) // len(trades),
            trades=trades,
        )
