from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List
import json
import logging
import os
import tempfile

from core.errors import PersistenceError
from risk.portfolio_monitor import ClosedTrade, SessionStats

logger = logging.getLogger(__name__)

DEFAULT_STARTING_VALUE = Decimal("10")

_TRADE_DECIMALS = {"entry_price", "exit_price", "amount", "pnl", "entry_market_cap", "exit_market_cap"}
_TRADE_DATETIMES = {"entry_time", "exit_time"}
_STATS_DECIMALS = {"starting_value", "portfolio_value", "total_pnl", "biggest_win", "biggest_loss", "avg_win", "avg_loss",
                   "gross_win", "gross_loss"}


def _encode(obj: Any) -> Dict[str, Any]:
    record = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        record[f.name] = value
    return record


def _decode(cls, record: Dict[str, Any], decimals: set, datetimes: set = frozenset()):
    values = {}
    for f in fields(cls):
        if f.name not in record:
            continue
        value = record[f.name]
        if f.name in decimals:
            value = Decimal(value)
        elif f.name in datetimes:
            value = datetime.fromisoformat(value)
        values[f.name] = value
    return cls(**values)


def trade_to_record(trade: ClosedTrade) -> Dict[str, Any]:
    return _encode(trade)


def trade_from_record(record: Dict[str, Any]) -> ClosedTrade:
    return _decode(ClosedTrade, record, _TRADE_DECIMALS, _TRADE_DATETIMES)


@dataclass
class TradeHistory:
    """
    Append-only ledger of closed trades plus the latest session stats.

    Stored as JSON. Every money field is written as a decimal string so a
    save/load cycle reproduces it exactly.
    """
    closed_trades: List[ClosedTrade]
    session_stats: SessionStats
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def new(cls, starting_value: Decimal = DEFAULT_STARTING_VALUE) -> "TradeHistory":
        return cls(closed_trades=[], session_stats=SessionStats.starting_at(starting_value))

    @classmethod
    def load(cls, path: str, starting_value: Decimal = DEFAULT_STARTING_VALUE) -> "TradeHistory":
        if not os.path.exists(path):
            logger.warning(f"Trade history file {path} not found, starting fresh")
            return cls.new(starting_value)

        try:
            with open(path, "r") as f:
                data = json.load(f)
            history = cls(
                closed_trades=[trade_from_record(r) for r in data["closed_trades"]],
                session_stats=_decode(SessionStats, data["session_stats"], _STATS_DECIMALS),
                last_updated=datetime.fromisoformat(data["last_updated"]),
            )
        except (OSError, ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise PersistenceError(f"Failed to load trade history from {path}: {str(e)}") from e

        logger.info(f"Loaded {len(history.closed_trades)} closed trades from history")
        return history

    def to_dict(self) -> Dict[str, Any]:
        return {
            "closed_trades": [trade_to_record(t) for t in self.closed_trades],
            "session_stats": _encode(self.session_stats),
            "last_updated": self.last_updated.isoformat(),
        }

    def save(self, path: str) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to save trade history to {path}: {str(e)}") from e

        logger.info(f"Saved {len(self.closed_trades)} trades to {path}")

    def add_closed_trade(self, trade: ClosedTrade) -> None:
        self.closed_trades.append(trade)
        self.last_updated = datetime.now(timezone.utc)

    def update_session_stats(self, stats: SessionStats) -> None:
        self.session_stats = SessionStats(**{f.name: getattr(stats, f.name) for f in fields(stats)})
        self.last_updated = datetime.now(timezone.utc)

    def get_total_trades(self) -> int:
        return len(self.closed_trades)

    def get_win_rate(self) -> float:
        if not self.closed_trades:
            return 0.0
        wins = sum(1 for t in self.closed_trades if t.is_win)
        return wins / len(self.closed_trades) * 100

    def get_total_pnl(self) -> Decimal:
        return sum((t.pnl for t in self.closed_trades), Decimal("0"))

    def get_best_trades(self, limit: int = 5) -> List[ClosedTrade]:
        return sorted(self.closed_trades, key=lambda t: t.pnl, reverse=True)[:limit]

    def get_worst_trades(self, limit: int = 5) -> List[ClosedTrade]:
        return sorted(self.closed_trades, key=lambda t: t.pnl)[:limit]
