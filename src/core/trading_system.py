from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple
import asyncio
import logging

from analysis.chart_analyzer import ChartAnalyzer
from analysis.smart_money_score import SmartMoneyScorer
from analysis.wallet_metrics import build_wallet_analysis
from core.errors import PersistenceError, TradingError
from core.events import (
    BotStarted,
    NotificationEvent,
    PortfolioUpdate,
    PositionClosed,
    PositionOpened,
    ScamDetected,
    UltraSignalDetected,
)
from core.types import MarketSnapshot, SecurityInfo, TradeEvent, WalletAnalysis
from data.trade_history import TradeHistory
from db.service import DatabaseService
from execution.dry_run_executor import DryRunExecutor
from risk.portfolio_monitor import ClosedTrade, PortfolioMonitor, utc_now
from risk.position_manager import PositionManager
from risk.risk_manager import RiskManager
from strategies.convergence_strategy import SmartMoneyConvergenceStrategy, UltraSignal
from strategies.copy_trading_strategy import CopyTradingStrategy
from utils.config import Config


class TradeSource(Protocol):
    async def fetch_trade_events(self, wallet: str, limit: int) -> List[TradeEvent]: ...


class MarketDataSource(Protocol):
    async def fetch_market_snapshot(self, mint: str) -> MarketSnapshot: ...


class SecuritySource(Protocol):
    async def fetch_security_info(self, mint: str) -> SecurityInfo: ...


class Notifier(Protocol):
    async def notify(self, event: NotificationEvent) -> bool: ...


class TradingSystem:
    """
    One analysis/trading cycle:

    analyze wallets -> detect convergence -> evaluate entries -> refresh and
    exit open positions -> persist the ledger.
    Per-wallet and per-asset failures are logged and skipped.
    """

    def __init__(self,
                 config: Config,
                 wallets: Sequence[str],
                 trade_source: TradeSource,
                 market_data: MarketDataSource,
                 security: SecuritySource,
                 notifier: Notifier,
                 portfolio: PortfolioMonitor,
                 trade_history: TradeHistory,
                 db_service: Optional[DatabaseService] = None,
                 executor: Optional[DryRunExecutor] = None,
                 clock: Callable[[], datetime] = utc_now,
                 logger: logging.Logger = None):
        self.config = config
        self.wallets = list(wallets)
        self.trade_source = trade_source
        self.market_data = market_data
        self.security = security
        self.notifier = notifier
        self.portfolio = portfolio
        self.trade_history = trade_history
        self.db_service = db_service
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        strategy = config.strategy
        self.convergence = SmartMoneyConvergenceStrategy(
            convergence_threshold=strategy.convergence_threshold,
            time_window_minutes=strategy.time_window_minutes,
            min_smart_score=strategy.min_smart_money_score,
            logger=self.logger,
        )
        self.strategy = CopyTradingStrategy(
            min_signal_confidence=strategy.min_signal_confidence,
            min_combined_confidence=strategy.min_combined_confidence,
            logger=self.logger,
        )
        self.chart_analyzer = ChartAnalyzer(logger=self.logger)
        self.scorer = SmartMoneyScorer()
        self.risk_manager = RiskManager(config.risk, logger=self.logger)
        self.executor = executor or DryRunExecutor(logger=self.logger)
        self.position_manager = PositionManager(
            market_data,
            self.strategy,
            chart_analyzer=self.chart_analyzer,
            executor=self.executor,
            logger=self.logger,
        )

        self.is_running = False
        self.cycle_count = 0
        self._saved_trades = len(portfolio.closed_trades)
        self._stop_event = asyncio.Event()

    async def _notify(self, event: NotificationEvent) -> None:
        try:
            await self.notifier.notify(event)
        except Exception as e:
            self.logger.warning(f"Notification failed: {str(e)}")

    # Wallet analysis

    async def _analyze_wallet(self, wallet: str, now: datetime) -> Optional[Tuple[List[TradeEvent], WalletAnalysis]]:
        try:
            trades = await self.trade_source.fetch_trade_events(wallet, self.config.strategy.trade_history_limit)
            analysis = build_wallet_analysis(wallet, trades, now)
        except TradingError as e:
            self.logger.warning(f"Skipping wallet {wallet}: {str(e)}")
            return None
        except Exception as e:
            self.logger.error(f"Error analyzing wallet {wallet}: {str(e)}")
            return None

        if self.db_service:
            try:
                self.db_service.save_wallet_analysis(analysis)
            except Exception as e:
                self.logger.warning(f"Could not store analysis for {wallet}: {str(e)}")
        return trades, analysis

    async def analyze_wallets(self, now: datetime) -> Tuple[Dict[str, WalletAnalysis], Dict[str, List[TradeEvent]]]:
        """Analyze every tracked wallet against the same `now`"""
        results = await asyncio.gather(*(self._analyze_wallet(w, now) for w in self.wallets))

        analyses: Dict[str, WalletAnalysis] = {}
        recent_trades: Dict[str, List[TradeEvent]] = {}
        for wallet, result in zip(self.wallets, results):
            if result is None:
                continue
            trades, analysis = result
            analyses[wallet] = analysis
            recent_trades[wallet] = trades

        self.logger.info(f"Analyzed {len(analyses)}/{len(self.wallets)} wallets")
        return analyses, recent_trades

    # Entries

    async def evaluate_signal(self, ultra: UltraSignal, signal_id: Optional[int] = None) -> bool:
        """Try to open a paper position from a convergence signal. True if one was opened."""
        mint = ultra.mint
        if not self.strategy.should_evaluate(ultra):
            self.logger.debug(f"Signal for {mint} below evaluation threshold ({ultra.confidence:.2f})")
            return False
        if await self.portfolio.has_position(mint):
            self.logger.debug(f"Already holding {mint}")
            return False

        try:
            snapshot = await self.market_data.fetch_market_snapshot(mint)
            security = await self.security.fetch_security_info(mint)
        except TradingError as e:
            self.logger.warning(f"Skipping signal for {mint}: {str(e)}")
            return False

        allowed, reason = self.risk_manager.check_security(security)
        if not allowed:
            self.logger.warning(f"Skipping {snapshot.symbol} ({mint}): {reason}")
            if security.is_scam:
                await self._notify(ScamDetected(mint, snapshot.symbol, security.risk_level.value, security.warnings))
            return False

        chart = self.chart_analyzer.analyze_entry_exit(snapshot)
        signal = self.strategy.generate_signal(ultra, chart)
        if not signal.is_valid:
            self.logger.info(f"No entry for {snapshot.symbol} ({mint}): {signal.reason}")
            return False

        can_enter, size = await self.risk_manager.can_enter_position(mint, self.portfolio)
        if not can_enter:
            return False

        if self.config.trading_enabled:
            self.logger.warning("Live order execution is not supported, filling on paper")

        try:
            fill = self.executor.buy_token(mint, size, chart.suggested_entry)
            position = await self.portfolio.open_position(
                mint=mint,
                entry_price=fill.execution_price,
                amount=size,
                stop_loss=self.risk_manager.calculate_stop_loss(chart.suggested_entry),
                take_profit=chart.suggested_exit,
                market_cap=snapshot.market_cap,
                symbol=snapshot.symbol,
            )
        except (TradingError, ValueError) as e:
            self.logger.error(f"Entry failed for {mint}: {str(e)}")
            return False

        await self._notify(PositionOpened(
            mint=mint,
            symbol=position.symbol,
            entry_price=position.entry_price,
            amount=position.amount,
            stop_loss=position.stop_loss,
            take_profit=position.take_profit,
            confidence=signal.confidence,
            reason=signal.reason,
        ))
        if self.db_service and signal_id is not None:
            try:
                self.db_service.mark_signal_executed(signal_id)
            except Exception as e:
                self.logger.warning(f"Could not mark signal {signal_id} executed: {str(e)}")
        return True

    def _record_signal(self, ultra: UltraSignal) -> Optional[int]:
        if not self.db_service:
            return None
        try:
            return self.db_service.save_signal(ultra)
        except Exception as e:
            self.logger.warning(f"Could not store signal for {ultra.mint}: {str(e)}")
            return None

    async def process_signals(self, signals: Sequence[UltraSignal]) -> None:
        for ultra in signals:
            try:
                self.logger.info(f"Convergence on {ultra.mint}: {ultra.smart_wallets_count} wallets, "
                                 f"confidence {ultra.confidence:.2f}")
                await self._notify(UltraSignalDetected(
                    mint=ultra.mint,
                    confidence=ultra.confidence,
                    smart_wallets_count=ultra.smart_wallets_count,
                    avg_smart_score=ultra.avg_smart_score,
                    total_volume=ultra.total_volume,
                    signal_type=ultra.signal_type.value,
                ))
                await self.evaluate_signal(ultra, self._record_signal(ultra))
            except Exception as e:
                self.logger.error(f"Error processing signal for {ultra.mint}: {str(e)}")

    # Exits and persistence

    async def _notify_closed(self, trades: Sequence[ClosedTrade]) -> None:
        for trade in trades:
            await self._notify(PositionClosed(
                mint=trade.mint,
                symbol=trade.symbol,
                entry_price=trade.entry_price,
                exit_price=trade.exit_price,
                pnl=trade.pnl,
                pnl_pct=trade.pnl_pct,
                hold_time_minutes=trade.hold_time_minutes,
                exit_reason=trade.exit_reason,
            ))

    async def persist(self) -> None:
        """Append every trade closed since the last save, then write the ledger"""
        new_trades = self.portfolio.closed_trades[self._saved_trades:]
        if not new_trades:
            return
        for trade in new_trades:
            self.trade_history.add_closed_trade(trade)
        self._saved_trades += len(new_trades)
        self.trade_history.update_session_stats(await self.portfolio.snapshot())
        try:
            self.trade_history.save(self.config.paths.trade_history_path)
        except PersistenceError as e:
            # the whole ledger is rewritten on the next save
            self.logger.warning(f"Failed to save trade history: {str(e)}")

    async def send_portfolio_update(self, now: datetime) -> None:
        stats = await self.portfolio.snapshot()
        await self._notify(PortfolioUpdate(
            open_positions=await self.portfolio.open_position_count(),
            total_trades=stats.total_trades,
            win_rate=stats.win_rate,
            total_pnl=stats.total_pnl,
            portfolio_value=stats.portfolio_value,
            starting_value=stats.starting_value,
            timestamp=now,
        ))

    async def run_cycle(self) -> List[UltraSignal]:
        now = self.clock()
        self.cycle_count += 1
        self.logger.info(f"Cycle {self.cycle_count} started")

        analyses, recent_trades = await self.analyze_wallets(now)
        qualified = {w: a for w, a in analyses.items() if a.smart_money_score >= self.config.strategy.min_smart_money_score}
        ranked = sorted(qualified, key=lambda w: self.scorer.score_wallet(qualified[w]), reverse=True)
        if ranked:
            self.logger.info(f"{len(ranked)} smart wallets, top: {ranked[0]} "
                             f"({self.scorer.score_wallet(qualified[ranked[0]]):.2f})")

        signals = self.convergence.generate_signals(qualified, recent_trades, now)
        await self.process_signals(signals)

        hot = self.convergence.find_hot_wallets(analyses)
        if hot:
            self.logger.info(f"Hot wallets: {', '.join(hot)}")

        closed = await self.position_manager.check_and_update_positions(self.portfolio)
        await self._notify_closed(closed)
        await self.persist()

        every = self.config.strategy.portfolio_update_every_cycles
        if every and self.cycle_count % every == 0:
            await self.send_portfolio_update(now)

        return signals

    # Lifecycle

    async def start(self) -> None:
        self.is_running = True
        self._stop_event.clear()
        await self._notify(BotStarted(
            wallet_count=len(self.wallets),
            starting_capital=self.portfolio.stats.starting_value,
            trading_enabled=self.config.trading_enabled,
        ))
        self.logger.info(f"Trading system started with {len(self.wallets)} wallets")

    async def run(self) -> None:
        await self.start()
        interval = self.config.strategy.analysis_interval_seconds
        while self.is_running:
            try:
                await self.run_cycle()
            except Exception as e:
                self.logger.error(f"Cycle {self.cycle_count} failed: {str(e)}")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        self.logger.info("Stopping trading system...")
        self.is_running = False
        self._stop_event.set()
        await self.persist()
