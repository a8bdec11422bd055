from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional
import asyncio
import logging
import os

import pandas as pd


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OpenPosition:
    """A simulated position held by the bot"""
    mint: str
    symbol: str
    entry_time: datetime
    entry_price: Decimal
    entry_market_cap: Decimal
    amount: Decimal
    current_price: Decimal
    current_market_cap: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    unrealized_pnl: Decimal = Decimal("0")
    unrealized_pnl_pct: float = 0.0
    hold_time_minutes: int = 0

    def refresh(self, price: Decimal, market_cap: Decimal, now: datetime) -> None:
        self.current_price = price
        self.current_market_cap = market_cap
        self.unrealized_pnl = (price - self.entry_price) * self.amount / self.entry_price
        self.unrealized_pnl_pct = float((price - self.entry_price) / self.entry_price * 100)
        self.hold_time_minutes = int((now - self.entry_time).total_seconds() // 60)


@dataclass(frozen=True)
class ClosedTrade:
    mint: str
    symbol: str
    entry_time: datetime
    exit_time: datetime
    entry_price: Decimal
    exit_price: Decimal
    amount: Decimal
    pnl: Decimal
    pnl_pct: float
    hold_time_minutes: int
    is_win: bool
    entry_market_cap: Decimal = Decimal("0")
    exit_market_cap: Decimal = Decimal("0")
    exit_reason: str = ""


@dataclass
class SessionStats:
    """
    Running totals since the portfolio was created.

    These counters only grow. There is no calendar-day rollover, a restart
    starts a new session.
    """
    starting_value: Decimal
    portfolio_value: Decimal
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_pnl: Decimal = Decimal("0")
    biggest_win: Decimal = Decimal("0")
    biggest_loss: Decimal = Decimal("0")
    avg_win: Decimal = Decimal("0")
    avg_loss: Decimal = Decimal("0")
    gross_win: Decimal = Decimal("0")
    gross_loss: Decimal = Decimal("0")

    @classmethod
    def starting_at(cls, capital: Decimal) -> "SessionStats":
        return cls(starting_value=capital, portfolio_value=capital)

    def record(self, trade: ClosedTrade) -> None:
        self.total_trades += 1
        if trade.is_win:
            self.wins += 1
            self.gross_win += trade.pnl
            self.biggest_win = max(self.biggest_win, trade.pnl)
        else:
            # break-even trades count as losses
            self.losses += 1
            self.gross_loss += trade.pnl
            self.biggest_loss = min(self.biggest_loss, trade.pnl)

        self.total_pnl += trade.pnl
        self.portfolio_value += trade.pnl
        self.win_rate = self.wins / self.total_trades * 100
        self.avg_win = self.gross_win / self.wins if self.wins else Decimal("0")
        self.avg_loss = self.gross_loss / self.losses if self.losses else Decimal("0")


CSV_COLUMNS = [
    'mint', 'symbol', 'entry_time', 'exit_time', 'entry_price', 'exit_price', 'amount',
    'pnl', 'pnl_pct', 'hold_time_minutes', 'is_win', 'entry_market_cap', 'exit_market_cap', 'exit_reason'
]


class PortfolioMonitor:
    """
    Owns the open simulated positions and the session statistics.

    All reads and writes go through one asyncio.Lock. Readers get copies,
    never the live OpenPosition objects.
    """

    def __init__(self,
                 starting_capital: Decimal,
                 logger: logging.Logger = None,
                 trades_csv_path: Optional[str] = None,
                 clock: Callable[[], datetime] = utc_now,
                 stats: Optional[SessionStats] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.positions: Dict[str, OpenPosition] = {}
        self.closed_trades: List[ClosedTrade] = []
        self.stats = stats or SessionStats.starting_at(Decimal(starting_capital))
        self.position_lock = asyncio.Lock()
        self.trades_csv_path = trades_csv_path

        if trades_csv_path:
            self._initialize_csv()

    def _initialize_csv(self):
        """Create CSV with headers if it doesn't exist"""
        if not os.path.exists(self.trades_csv_path):
            directory = os.path.dirname(self.trades_csv_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            pd.DataFrame(columns=CSV_COLUMNS).to_csv(self.trades_csv_path, index=False)

    def _log_trade_to_csv(self, trade: ClosedTrade) -> None:
        row = {k: (str(v) if isinstance(v, (Decimal, datetime)) else v) for k, v in asdict(trade).items()}
        try:
            pd.DataFrame([row], columns=CSV_COLUMNS).to_csv(self.trades_csv_path, mode='a', header=False, index=False)
        except Exception as e:
            self.logger.error(f"Error writing trade to CSV: {str(e)}")

    async def has_position(self, mint: str) -> bool:
        async with self.position_lock:
            return mint in self.positions

    async def get_position(self, mint: str) -> Optional[OpenPosition]:
        async with self.position_lock:
            position = self.positions.get(mint)
            return replace(position) if position else None

    async def get_all_positions(self) -> Dict[str, OpenPosition]:
        async with self.position_lock:
            return {mint: replace(p) for mint, p in self.positions.items()}

    async def open_position_count(self) -> int:
        async with self.position_lock:
            return len(self.positions)

    async def committed_capital(self) -> Decimal:
        async with self.position_lock:
            return sum((p.amount for p in self.positions.values()), Decimal("0"))

    async def open_position(self,
                            mint: str,
                            entry_price: Decimal,
                            amount: Decimal,
                            stop_loss: Decimal,
                            take_profit: Decimal,
                            market_cap: Decimal = Decimal("0"),
                            symbol: str = "UNKNOWN") -> OpenPosition:
        if entry_price <= 0:
            raise ValueError(f"Entry price must be positive for {mint}: {entry_price}")

        position = OpenPosition(
            mint=mint,
            symbol=symbol,
            entry_time=self.clock(),
            entry_price=entry_price,
            entry_market_cap=market_cap,
            amount=amount,
            current_price=entry_price,
            current_market_cap=market_cap,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )

        async with self.position_lock:
            if mint in self.positions:
                self.logger.warning(f"Replacing existing position for {mint}")
            self.positions[mint] = position

        self.logger.info(f"Opened position: {symbol} ({mint}) entry={entry_price} amount={amount} "
                         f"stop_loss={stop_loss} take_profit={take_profit}")
        return replace(position)

    async def update_price(self, mint: str, price: Decimal, market_cap: Decimal) -> Optional[OpenPosition]:
        """Refresh one position with a new quote. Returns a copy, or None if not held."""
        async with self.position_lock:
            position = self.positions.get(mint)
            if position is None:
                return None
            position.refresh(price, market_cap, self.clock())
            return replace(position)

    async def update_prices(self, prices: Dict[str, tuple]) -> None:
        """Bulk refresh from {mint: (price, market_cap)}. Unknown mints are ignored."""
        now = self.clock()
        async with self.position_lock:
            for mint, (price, market_cap) in prices.items():
                position = self.positions.get(mint)
                if position is not None:
                    position.refresh(price, market_cap, now)

    async def close_position(self, mint: str, exit_price: Decimal, reason: str = "") -> Optional[ClosedTrade]:
        async with self.position_lock:
            position = self.positions.pop(mint, None)
            if position is None:
                self.logger.warning(f"No open position to close for {mint}")
                return None

            exit_time = self.clock()
            pnl = (exit_price - position.entry_price) * position.amount / position.entry_price
            trade = ClosedTrade(
                mint=mint,
                symbol=position.symbol,
                entry_time=position.entry_time,
                exit_time=exit_time,
                entry_price=position.entry_price,
                exit_price=exit_price,
                amount=position.amount,
                pnl=pnl,
                pnl_pct=float((exit_price - position.entry_price) / position.entry_price * 100),
                hold_time_minutes=int((exit_time - position.entry_time).total_seconds() // 60),
                is_win=pnl > 0,
                entry_market_cap=position.entry_market_cap,
                exit_market_cap=position.current_market_cap,
                exit_reason=reason,
            )
            self.stats.record(trade)
            self.closed_trades.append(trade)

        self.logger.info(f"Closed position: {trade.symbol} ({mint}) pnl={trade.pnl} ({trade.pnl_pct:.2f}%) "
                         f"hold={trade.hold_time_minutes}min reason={reason}")
        if self.trades_csv_path:
            self._log_trade_to_csv(trade)
        return trade

    async def snapshot(self) -> SessionStats:
        async with self.position_lock:
            return replace(self.stats)

    def get_last_closed_trade(self) -> Optional[ClosedTrade]:
        return self.closed_trades[-1] if self.closed_trades else None
