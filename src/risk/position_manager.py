from typing import List, Optional, Protocol
import asyncio
import logging

from analysis.chart_analyzer import ChartAnalyzer
from core.errors import TradingError
from core.types import MarketSnapshot
from execution.dry_run_executor import DryRunExecutor
from risk.portfolio_monitor import ClosedTrade, PortfolioMonitor
from strategies.copy_trading_strategy import CopyTradingStrategy


class MarketDataSource(Protocol):
    async def fetch_market_snapshot(self, mint: str) -> MarketSnapshot: ...


class PositionManager:
    """Refreshes open positions and closes the ones whose exit rules fire"""

    def __init__(self,
                 market_data: MarketDataSource,
                 strategy: CopyTradingStrategy,
                 chart_analyzer: ChartAnalyzer = None,
                 executor: DryRunExecutor = None,
                 request_delay_seconds: float = 0,
                 logger: Optional[logging.Logger] = None):
        self.market_data = market_data
        self.strategy = strategy
        self.chart_analyzer = chart_analyzer or ChartAnalyzer()
        self.executor = executor or DryRunExecutor(logger=logger)
        self.request_delay_seconds = request_delay_seconds
        self.logger = logger or logging.getLogger(__name__)

    async def check_and_update_positions(self, portfolio: PortfolioMonitor) -> List[ClosedTrade]:
        """
        One refresh pass over every open position.

        A failed quote for one asset is logged and that asset is left as is
        until the next pass. It never counts as an exit.
        """
        closed = []
        positions = await portfolio.get_all_positions()

        for mint in positions:
            try:
                snapshot = await self.market_data.fetch_market_snapshot(mint)
            except TradingError as e:
                self.logger.warning(f"Could not refresh {mint}, retrying next cycle: {str(e)}")
                continue
            except Exception as e:
                self.logger.error(f"Unexpected error refreshing {mint}: {str(e)}")
                continue

            position = await portfolio.update_price(mint, snapshot.price_usd, snapshot.market_cap)
            if position is None:
                continue

            chart = self.chart_analyzer.analyze_entry_exit(snapshot)
            reason = self.strategy.check_exit(position, chart)
            if reason is not None:
                self.logger.info(f"Exit triggered for {position.symbol} ({mint}): {reason.value}")
                try:
                    fill = self.executor.sell_token(mint, position.amount, position.current_price)
                except TradingError as e:
                    self.logger.error(f"Exit failed for {mint}, keeping position open: {str(e)}")
                    continue
                trade = await portfolio.close_position(mint, fill.execution_price, reason.value)
                if trade:
                    closed.append(trade)

            if self.request_delay_seconds:
                await asyncio.sleep(self.request_delay_seconds)

        return closed
