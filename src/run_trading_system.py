import asyncio
import signal
import uuid
from decimal import Decimal

from core.errors import ConfigError, PersistenceError
from core.trading_system import TradingSystem
from data.cache import TTLCache
from data.scam_check import ScamChecker
from data.token_data_feed import TokenDataFeed
from data.trade_history import TradeHistory
from data.tracked_wallets import load_tracked_wallets
from data.wallet_trades_feed import WalletTradesFeed
from db.service import DatabaseService
from db.database import DatabaseConnection
from risk.portfolio_monitor import PortfolioMonitor
from utils.config import Config
from utils.logger import TradingLogger
from utils.telegram_notifier import TelegramNotifier


class InitTradingSystem:
    def __init__(self, config: Config, logger: TradingLogger = None):
        self.config = config
        self.trading_bot = None
        self.logger = logger
        self._closers = []

    def handle_shutdown(self, signum, frame):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}. Starting graceful shutdown...")
        if self.trading_bot:
            loop = asyncio.get_running_loop()
            loop.create_task(self.trading_bot.stop())

    def build(self) -> TradingSystem:
        config = self.config
        log = self.logger.logger
        sources = config.data_sources

        wallets = load_tracked_wallets(config.paths.tracked_wallets_path, log)
        try:
            history = TradeHistory.load(config.paths.trade_history_path, config.risk.starting_capital)
        except PersistenceError:
            # an unreadable ledger is never overwritten
            self.logger.error(f"Refusing to start, fix or move {config.paths.trade_history_path} first")
            raise

        trade_source = WalletTradesFeed(sources.rpc_url, logger=self.logger.child("rpc"))
        market_data = TokenDataFeed(sources.dexscreener_api_url, sources.request_timeout_seconds,
                                    TTLCache(sources.token_cache_ttl_seconds), logger=self.logger.child("dexscreener"))
        security = ScamChecker(sources.rugcheck_api_url, sources.request_timeout_seconds,
                               TTLCache(sources.security_cache_ttl_seconds), logger=self.logger.child("rugcheck"))
        self._closers = [trade_source.close, market_data.close, security.close]

        notifier = TelegramNotifier(config.monitoring.telegram_bot_token, config.monitoring.telegram_chat_id,
                                    enabled=config.monitoring.telegram_enabled, logger=self.logger.child("telegram"))
        portfolio = PortfolioMonitor(Decimal(config.risk.starting_capital), logger=log,
                                     trades_csv_path=config.paths.trades_csv_path)
        db_service = DatabaseService(run_id=uuid.uuid4().hex[:12], db=DatabaseConnection(config.paths.db_url))

        return TradingSystem(
            config=config,
            wallets=wallets,
            trade_source=trade_source,
            market_data=market_data,
            security=security,
            notifier=notifier,
            portfolio=portfolio,
            trade_history=history,
            db_service=db_service,
            logger=log,
        )

    async def run_trading_system(self) -> None:
        """Run trading system with graceful shutdown"""
        try:
            self.trading_bot = self.build()
            if not self.trading_bot.wallets:
                self.logger.warning(f"No wallets to track, add some to {self.config.paths.tracked_wallets_path}")
                return
            await self.trading_bot.run()
        except Exception as e:
            self.logger.error(f"Error in trading system: {e}")
            raise
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Gracefully shutdown the trading system"""
        if self.trading_bot and self.trading_bot.is_running:
            self.logger.info("Shutting down trading system...")
            shutdown_timeout = 10
            try:
                await asyncio.wait_for(self.trading_bot.stop(), timeout=shutdown_timeout)
                self.logger.info("Trading system stopped successfully")
            except asyncio.TimeoutError:
                self.logger.error(f"Shutdown timed out after {shutdown_timeout} seconds")
                self.trading_bot.is_running = False
        for close in self._closers:
            try:
                await close()
            except Exception as e:
                self.logger.warning(f"Error closing client: {e}")
        self._closers = []


async def main():
    try:
        config = Config()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return

    logger = TradingLogger("trading_system",
                           log_dir=config.monitoring.log_dir,
                           console_output=config.monitoring.console_output,
                           level=config.monitoring.log_level)
    init_system = InitTradingSystem(config, logger)

    # Register signal handlers
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, init_system.handle_shutdown)

    try:
        logger.info("Starting trading system...")
        await init_system.run_trading_system()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
    finally:
        logger.info("Trading system shutdown complete")

def cli():
    asyncio.run(main())

if __name__ == "__main__":
    cli()
