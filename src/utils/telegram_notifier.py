from decimal import Decimal
from typing import Optional
import logging

from telegram import Bot
from telegram.error import TelegramError

from core.events import (
    BotStarted,
    NotificationEvent,
    PortfolioUpdate,
    PositionClosed,
    PositionOpened,
    ScamDetected,
    UltraSignalDetected,
)

BIG_WIN_PNL = Decimal("5")


def format_message(event: NotificationEvent) -> str:
    if isinstance(event, BotStarted):
        mode = "trading enabled" if event.trading_enabled else "paper"
        return (f"Bot started\n"
                f"Tracking {event.wallet_count} wallets\n"
                f"Starting capital: ${event.starting_capital}\n"
                f"Mode: {mode}")

    if isinstance(event, PositionOpened):
        return (f"BUY {event.symbol}\n"
                f"Mint: {event.mint}\n"
                f"Entry: ${event.entry_price}\n"
                f"Amount: ${event.amount}\n"
                f"Stop loss: ${event.stop_loss}\n"
                f"Take profit: ${event.take_profit}\n"
                f"Confidence: {event.confidence * 100:.0f}%\n"
                f"Reason: {event.reason}")

    if isinstance(event, PositionClosed):
        result = "WIN" if event.pnl > 0 else "LOSS"
        text = (f"SELL {event.symbol} ({result})\n"
                f"Entry: ${event.entry_price} -> Exit: ${event.exit_price}\n"
                f"PnL: ${event.pnl:.2f} ({event.pnl_pct:+.2f}%)\n"
                f"Held: {event.hold_time_minutes} min\n"
                f"Reason: {event.exit_reason}")
        if event.pnl > BIG_WIN_PNL:
            text += "\nBig win!"
        return text

    if isinstance(event, UltraSignalDetected):
        return (f"Convergence signal: {event.mint}\n"
                f"{event.smart_wallets_count} smart wallets bought\n"
                f"Confidence: {event.confidence * 100:.0f}%\n"
                f"Avg wallet score: {event.avg_smart_score:.2f}\n"
                f"Volume: {event.total_volume}")

    if isinstance(event, ScamDetected):
        warnings = ", ".join(event.warnings) if event.warnings else "none"
        return (f"Scam detected, skipping {event.symbol}\n"
                f"Mint: {event.mint}\n"
                f"Risk: {event.risk_level}\n"
                f"Warnings: {warnings}")

    if isinstance(event, PortfolioUpdate):
        change = event.portfolio_value - event.starting_value
        return (f"Portfolio update ({event.timestamp:%Y-%m-%d %H:%M} UTC)\n"
                f"Value: ${event.portfolio_value:.2f} ({change:+.2f})\n"
                f"Open positions: {event.open_positions}\n"
                f"Trades: {event.total_trades}, win rate {event.win_rate:.1f}%\n"
                f"Total PnL: ${event.total_pnl:.2f}")

    raise TypeError(f"Unknown notification event: {type(event).__name__}")


class TelegramNotifier:
    """Fire-and-forget Telegram sink. Send failures are logged, never raised."""

    def __init__(self,
                 bot_token: Optional[str] = None,
                 chat_id: Optional[str] = None,
                 enabled: bool = True,
                 logger: logging.Logger = None):
        self.chat_id = chat_id
        self.enabled = bool(enabled and bot_token and chat_id)
        self.bot = Bot(token=bot_token) if self.enabled else None
        self.logger = logger or logging.getLogger(__name__)

    async def notify(self, event: NotificationEvent) -> bool:
        message = format_message(event)
        if not self.enabled:
            self.logger.debug(f"Notification (telegram disabled): {message.splitlines()[0]}")
            return False

        try:
            await self.bot.send_message(chat_id=self.chat_id, text=message)
            return True
        except TelegramError as e:
            self.logger.warning(f"Telegram send error: {str(e)}")
            return False
