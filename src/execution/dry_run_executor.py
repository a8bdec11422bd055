from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import logging
import uuid

from core.errors import ExecutionError


@dataclass(frozen=True)
class SimulatedFill:
    mint: str
    side: str  # 'BUY' or 'SELL'
    requested_price: Decimal
    execution_price: Decimal
    amount: Decimal
    tx_sig: str
    timestamp: datetime


class DryRunExecutor:
    """Paper fills at the quoted price, optionally shifted by slippage"""

    def __init__(self, slippage_bps: int = 0, logger: Optional[logging.Logger] = None):
        self.slippage_bps = slippage_bps
        self.logger = logger or logging.getLogger(__name__)

    def _fill(self, side: str, mint: str, amount: Decimal, price: Decimal) -> SimulatedFill:
        if price <= 0:
            raise ExecutionError(f"Cannot fill {side} for {mint} at price {price}")
        if amount <= 0:
            raise ExecutionError(f"Cannot fill {side} for {mint} with amount {amount}")

        slippage = Decimal(self.slippage_bps) / Decimal(10000)
        execution_price = price * (1 + slippage) if side == "BUY" else price * (1 - slippage)
        fill = SimulatedFill(
            mint=mint,
            side=side,
            requested_price=price,
            execution_price=execution_price,
            amount=amount,
            tx_sig=f"paper-{uuid.uuid4().hex[:16]}",
            timestamp=datetime.now(timezone.utc),
        )
        self.logger.info(f"DRY RUN {side} {mint}: amount={amount} price={execution_price}")
        return fill

    def buy_token(self, mint: str, amount: Decimal, price: Decimal) -> SimulatedFill:
        return self._fill("BUY", mint, amount, price)

    def sell_token(self, mint: str, amount: Decimal, price: Decimal) -> SimulatedFill:
        return self._fill("SELL", mint, amount, price)
