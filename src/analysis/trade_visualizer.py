import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import os

from analysis.backtester import BacktestResults


class TradeVisualizer:
    def __init__(self, results: BacktestResults):
        """Charts for a finished backtest"""
        self.results = results
        self.trades_df = results.to_dataframe()

    def plot_equity_curve(self, output_path: str) -> str:
        """Capital after each trade on top, per-trade PnL bars below"""
        if self.trades_df.empty:
            raise ValueError("No trades to plot")

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), height_ratios=[2, 1])
        fig.suptitle(f'Backtest - {self.results.total_trades} trades, ROI {self.results.roi_pct:.2f}%', fontsize=14)

        trade_numbers = range(1, len(self.trades_df) + 1)
        ax1.plot(trade_numbers, self.trades_df['capital'], color='b', linewidth=1.5)
        ax1.axhline(float(self.results.starting_capital), color='gray', linestyle='--', alpha=0.6)
        ax1.set_ylabel('Capital')
        ax1.grid(True, alpha=0.3)

        colors = ['g' if win else 'r' for win in self.trades_df['is_win']]
        ax2.bar(trade_numbers, self.trades_df['pnl'], color=colors)
        ax2.set_xlabel('Trade #')
        ax2.set_ylabel('PnL')
        ax2.grid(True, alpha=0.3)

        summary = (f"Win rate: {self.results.win_rate_pct:.1f}%\n"
                   f"Profit factor: {self.results.profit_factor:.2f}\n"
                   f"Max drawdown: {self.results.max_drawdown_pct:.2f}%\n"
                   f"Sharpe: {self.results.sharpe_ratio:.2f}")
        fig.text(0.02, 0.02, summary, fontsize=10, bbox=dict(facecolor='white', alpha=0.8))

        plt.tight_layout()
        plt.savefig(output_path)
        plt.close(fig)
        return output_path
