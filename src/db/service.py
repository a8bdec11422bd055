from typing import List
from .database import DatabaseConnection
from .models import UltraSignalRecord, WalletAnalysisRecord
from core.types import WalletAnalysis
from strategies.convergence_strategy import UltraSignal
import logging

class DatabaseService:
    """Audit trail of emitted convergence signals and wallet analyses"""

    def __init__(self, run_id: str, db: DatabaseConnection = None):
        self.db = db or DatabaseConnection()
        self.logger = logging.getLogger(__name__)
        self.run_id = run_id
        self.db.init_db()

    def save_signal(self, signal: UltraSignal) -> int:
        """Save a convergence signal, returns its id"""
        session = self.db.get_session()
        try:
            record = UltraSignalRecord(
                detected_at=signal.detected_at,
                mint=signal.mint,
                confidence=signal.confidence,
                smart_wallets_count=signal.smart_wallets_count,
                avg_smart_score=signal.avg_smart_score,
                total_volume=str(signal.total_volume),
                signal_type=signal.signal_type.value,
                wallets=list(signal.wallets),
                executed=False,
                run_id=self.run_id
            )
            session.add(record)
            session.commit()
            return record.id
        except Exception as e:
            self.logger.error(f"Error saving signal: {str(e)}")
            session.rollback()
            raise
        finally:
            session.close()

    def mark_signal_executed(self, signal_id: int) -> None:
        session = self.db.get_session()
        try:
            record = session.get(UltraSignalRecord, signal_id)
            if record:
                record.executed = True
                session.commit()
        except Exception as e:
            self.logger.error(f"Error updating signal {signal_id}: {str(e)}")
            session.rollback()
            raise
        finally:
            session.close()

    def save_wallet_analysis(self, analysis: WalletAnalysis) -> int:
        """Save a snapshot of one wallet's analysis"""
        session = self.db.get_session()
        metrics = analysis.metrics
        try:
            record = WalletAnalysisRecord(
                wallet=analysis.wallet,
                analyzed_at=analysis.analyzed_at,
                smart_money_score=analysis.smart_money_score,
                risk_score=analysis.risk_score,
                is_insider=analysis.is_insider,
                is_whale=analysis.is_whale,
                total_trades=metrics.total_trades,
                win_rate=metrics.win_rate,
                total_pnl=str(metrics.total_pnl),
                sharpe_ratio=metrics.sharpe_ratio,
                max_drawdown=metrics.max_drawdown,
                trades_last_24h=metrics.trades_last_24h,
                volume_7d=str(metrics.volume_7d),
                preferred_tokens=list(analysis.preferred_tokens),
                trading_patterns=list(analysis.trading_patterns),
                run_id=self.run_id
            )
            session.add(record)
            session.commit()
            return record.id
        except Exception as e:
            self.logger.error(f"Error saving wallet analysis: {str(e)}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_recent_signals(self, limit: int = 20) -> List[UltraSignalRecord]:
        """Most recent signals first"""
        session = self.db.get_session()
        try:
            return (
                session.query(UltraSignalRecord)
                .order_by(UltraSignalRecord.detected_at.desc(), UltraSignalRecord.id.desc())
                .limit(limit)
                .all()
            )
        finally:
            session.close()
