from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple


class TradeSide(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


@dataclass(frozen=True)
class TradeEvent:
    """One observed swap by a tracked wallet"""
    wallet: str
    mint: str
    side: TradeSide
    amount_in: Decimal
    amount_out: Decimal
    price: Decimal
    timestamp: datetime
    signature: str
    dex: str = "Unknown"
    market_cap: Decimal = Decimal("0")

    @property
    def is_buy(self) -> bool:
        return self.side == TradeSide.BUY


class PositionStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    PARTIALLY_FILLED = "PartiallyFilled"


@dataclass(frozen=True)
class Position:
    """A matched entry/exit pair (or a still-open entry) for one wallet+asset"""
    wallet: str
    mint: str
    entry_trade: TradeEvent
    status: PositionStatus
    exit_trade: Optional[TradeEvent] = None
    pnl: Optional[Decimal] = None
    pnl_pct: Optional[Decimal] = None
    hold_time_seconds: Optional[int] = None
    entry_market_cap: Optional[Decimal] = None
    exit_market_cap: Optional[Decimal] = None

    @property
    def is_closed(self) -> bool:
        return self.status == PositionStatus.CLOSED

    def with_market_caps(self, entry_market_cap: Optional[Decimal], exit_market_cap: Optional[Decimal] = None) -> "Position":
        """Return a copy enriched with market-cap context"""
        return replace(self, entry_market_cap=entry_market_cap, exit_market_cap=exit_market_cap)


@dataclass
class WalletMetrics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_pnl: Decimal = Decimal("0")
    total_pnl_percentage: float = 0.0
    avg_profit_per_trade: Decimal = Decimal("0")
    avg_hold_time_seconds: int = 0
    largest_win: Decimal = Decimal("0")
    largest_loss: Decimal = Decimal("0")
    sharpe_ratio: Optional[float] = None
    max_drawdown: float = 0.0
    trades_last_24h: int = 0
    trades_last_7d: int = 0
    volume_24h: Decimal = Decimal("0")
    volume_7d: Decimal = Decimal("0")


@dataclass
class WalletAnalysis:
    wallet: str
    metrics: WalletMetrics
    smart_money_score: float
    risk_score: float
    is_insider: bool
    is_whale: bool
    typical_hold_time_seconds: int
    analyzed_at: datetime
    best_entry_market_cap_range: Optional[Tuple[Decimal, Decimal]] = None
    best_exit_market_cap_range: Optional[Tuple[Decimal, Decimal]] = None
    preferred_tokens: List[str] = field(default_factory=list)
    trading_patterns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time market data for one asset"""
    mint: str
    price_usd: Decimal
    market_cap: Decimal
    liquidity_usd: Decimal
    volume_24h: Decimal
    price_change_5m: float = 0.0
    price_change_1h: float = 0.0
    price_change_24h: float = 0.0
    symbol: str = "UNKNOWN"
    name: str = "Unknown"
    dex: str = "Unknown"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


@dataclass(frozen=True)
class SecurityInfo:
    mint: str
    is_scam: bool = False
    is_bundle: bool = False
    risk_level: RiskLevel = RiskLevel.MEDIUM
    rugcheck_score: Optional[float] = None
    top_holders_pct: Optional[float] = None
    liquidity_locked: bool = False
    warnings: Tuple[str, ...] = ()
