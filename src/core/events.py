from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Union


@dataclass(frozen=True)
class BotStarted:
    wallet_count: int
    starting_capital: Decimal
    trading_enabled: bool


@dataclass(frozen=True)
class PositionOpened:
    mint: str
    symbol: str
    entry_price: Decimal
    amount: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    confidence: float
    reason: str


@dataclass(frozen=True)
class PositionClosed:
    mint: str
    symbol: str
    entry_price: Decimal
    exit_price: Decimal
    pnl: Decimal
    pnl_pct: float
    hold_time_minutes: int
    exit_reason: str


@dataclass(frozen=True)
class UltraSignalDetected:
    mint: str
    confidence: float
    smart_wallets_count: int
    avg_smart_score: float
    total_volume: Decimal
    signal_type: str


@dataclass(frozen=True)
class ScamDetected:
    mint: str
    symbol: str
    risk_level: str
    warnings: tuple = ()


@dataclass(frozen=True)
class PortfolioUpdate:
    open_positions: int
    total_trades: int
    win_rate: float
    total_pnl: Decimal
    portfolio_value: Decimal
    starting_value: Decimal
    timestamp: datetime


NotificationEvent = Union[BotStarted, PositionOpened, PositionClosed, UltraSignalDetected, ScamDetected, PortfolioUpdate]
