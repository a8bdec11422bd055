from decimal import Decimal
from typing import Optional, Tuple
import logging

from core.types import SecurityInfo
from risk.portfolio_monitor import PortfolioMonitor
from utils.config import RiskParameters


class RiskManager:
    def __init__(self,
                 risk_params: RiskParameters,
                 logger: Optional[logging.Logger] = None):
        self.risk_params = risk_params
        self.logger = logger or logging.getLogger(__name__)

    async def can_enter_position(self, mint: str, portfolio: PortfolioMonitor) -> Tuple[bool, Decimal]:
        """Check if we can enter a new position based on current positions and risk parameters"""
        if await portfolio.has_position(mint):
            self.logger.debug(f"Already holding {mint}")
            return False, Decimal("0")

        open_positions = await portfolio.open_position_count()
        if open_positions >= self.risk_params.max_positions:
            self.logger.debug(f"Max positions reached: {open_positions}")
            return False, Decimal("0")

        position_size = self.risk_params.position_size
        stats = await portfolio.snapshot()
        available = stats.portfolio_value - await portfolio.committed_capital()
        if position_size > available:
            self.logger.debug(f"Insufficient capital: {available}")
            return False, Decimal("0")

        return True, position_size

    def calculate_stop_loss(self, suggested_entry: Decimal) -> Decimal:
        return suggested_entry * self.risk_params.stop_loss_factor

    def check_security(self, info: SecurityInfo) -> Tuple[bool, str]:
        """(allowed, reason) for a token's security report"""
        if info.is_scam:
            return False, "scam"
        if info.is_bundle:
            return False, "bundle"
        return True, ""
