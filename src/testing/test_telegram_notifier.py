from decimal import Decimal
import asyncio

import pytest

from core.events import BotStarted, PortfolioUpdate, PositionClosed, ScamDetected
from utils.telegram_notifier import TelegramNotifier, format_message


def _closed(pnl):
    return PositionClosed(mint="M1", symbol="TKN", entry_price=Decimal("1"), exit_price=Decimal("1.6"),
                          pnl=Decimal(pnl), pnl_pct=60.0, hold_time_minutes=42, exit_reason="Take Profit")


def test_closed_position_message():
    text = format_message(_closed("6"))

    assert text.startswith("SELL TKN (WIN)")
    assert "PnL: $6.00 (+60.00%)" in text
    assert "Reason: Take Profit" in text
    assert text.endswith("Big win!")

    assert "Big win!" not in format_message(_closed("5"))


def test_other_messages(now):
    assert "Tracking 3 wallets" in format_message(BotStarted(3, Decimal("10"), False))
    assert "Mode: paper" in format_message(BotStarted(3, Decimal("10"), False))

    scam = format_message(ScamDetected("M1", "RUG", "Critical", ("Mint authority",)))
    assert "Warnings: Mint authority" in scam

    update = format_message(PortfolioUpdate(open_positions=1, total_trades=4, win_rate=50.0, total_pnl=Decimal("2"),
                                            portfolio_value=Decimal("12"), starting_value=Decimal("10"), timestamp=now))
    assert "Value: $12.00 (+2.00)" in update
    assert "2024-06-01 12:00" in update


def test_unknown_event_rejected():
    with pytest.raises(TypeError):
        format_message("hello")


def test_disabled_notifier_does_not_send():
    notifier = TelegramNotifier(bot_token=None, chat_id=None)

    assert notifier.enabled is False
    assert asyncio.run(notifier.notify(_closed("1"))) is False
