from decimal import Decimal
from typing import Dict, Iterable, List, Tuple
import logging

from core.types import Position, PositionStatus, TradeEvent

logger = logging.getLogger(__name__)


def group_trades_into_positions(trades: Iterable[TradeEvent]) -> List[Position]:
    """
    Match buys and sells per (wallet, mint) into positions.

    Trades are replayed in timestamp order (stable, so ties keep input order).
    Each sell closes the most recently opened pending buy for its key.
    Sells with nothing pending are dropped. Buys left over become open
    positions, emitted after all closed ones in first-seen key order.
    """
    ordered = sorted(trades, key=lambda t: t.timestamp)
    pending: Dict[Tuple[str, str], List[TradeEvent]] = {}
    positions: List[Position] = []
    dropped = 0

    for trade in ordered:
        key = (trade.wallet, trade.mint)
        if trade.is_buy:
            pending.setdefault(key, []).append(trade)
            continue

        stack = pending.get(key)
        if not stack:
            dropped += 1
            continue

        positions.append(_close(stack.pop(), trade))

    for stack in pending.values():
        for buy in stack:
            positions.append(Position(
                wallet=buy.wallet,
                mint=buy.mint,
                entry_trade=buy,
                status=PositionStatus.OPEN,
                entry_market_cap=buy.market_cap,
            ))

    if dropped:
        logger.debug(f"Dropped {dropped} unmatched sells")
    return positions


def _close(buy: TradeEvent, sell: TradeEvent) -> Position:
    pnl = sell.amount_out - buy.amount_in
    pnl_pct = pnl / buy.amount_in * 100 if buy.amount_in > 0 else Decimal("0")
    hold_time = int((sell.timestamp - buy.timestamp).total_seconds())

    return Position(
        wallet=buy.wallet,
        mint=buy.mint,
        entry_trade=buy,
        exit_trade=sell,
        status=PositionStatus.CLOSED,
        pnl=pnl,
        pnl_pct=pnl_pct,
        hold_time_seconds=hold_time,
        entry_market_cap=buy.market_cap,
        exit_market_cap=sell.market_cap,
    )


def closed_positions(positions: Iterable[Position]) -> List[Position]:
    return [p for p in positions if p.is_closed]
