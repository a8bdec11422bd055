import argparse
import os
from decimal import Decimal

from dotenv import load_dotenv

from analysis.backtester import BacktestConfig, Backtester
from analysis.trade_visualizer import TradeVisualizer
from core.errors import BacktestError, PersistenceError
from data.trade_history import TradeHistory
from utils.logger import TradingLogger


def parse_args():
    parser = argparse.ArgumentParser(description="Replay the closed-trade ledger with a fixed position size")
    parser.add_argument("--history", default="trade_history.json", help="Trade ledger to replay")
    parser.add_argument("--output", default="backtest_results.json", help="Where to write the results JSON")
    parser.add_argument("--plot", default=None, help="Optional path for an equity curve PNG")
    return parser.parse_args()


def main():
    load_dotenv()
    args = parse_args()
    logger = TradingLogger("backtest", console_output=True)

    config = BacktestConfig(
        starting_capital=Decimal(os.getenv("BACKTEST_STARTING_CAPITAL", "100")),
        position_size=Decimal(os.getenv("BACKTEST_POSITION_SIZE", "10")),
    )

    try:
        history = TradeHistory.load(args.history)
        results = Backtester(config, logger=logger.logger).run(history.closed_trades)
    except (PersistenceError, BacktestError) as e:
        logger.error(f"Backtest failed: {str(e)}")
        return 1

    results.log_report(logger.logger)
    results.save_to_file(args.output)
    logger.info(f"Results saved to {args.output}")

    if args.plot:
        TradeVisualizer(results).plot_equity_curve(args.plot)
        logger.info(f"Equity curve saved to {args.plot}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
