from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, JSON, Index, func
from .database import Base

# Money columns are stored as strings to keep exact decimal values

class UltraSignalRecord(Base):
    __tablename__ = 'ultra_signals'

    id = Column(Integer, primary_key=True)
    detected_at = Column(DateTime, nullable=False)
    mint = Column(String, nullable=False)
    confidence = Column(Float, nullable=False)
    smart_wallets_count = Column(Integer, nullable=False)
    avg_smart_score = Column(Float, nullable=False)
    total_volume = Column(String, nullable=False)
    signal_type = Column(String, nullable=False)
    wallets = Column(JSON)
    executed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    run_id = Column(String, nullable=False)

    __table_args__ = (Index('ix_ultra_signals_mint_detected', 'mint', 'detected_at'),)

class WalletAnalysisRecord(Base):
    __tablename__ = 'wallet_analyses'

    id = Column(Integer, primary_key=True)
    wallet = Column(String, nullable=False, index=True)
    analyzed_at = Column(DateTime, nullable=False)
    smart_money_score = Column(Float, nullable=False)
    risk_score = Column(Float, nullable=False)
    is_insider = Column(Boolean, nullable=False)
    is_whale = Column(Boolean, nullable=False)
    total_trades = Column(Integer, nullable=False)
    win_rate = Column(Float, nullable=False)
    total_pnl = Column(String, nullable=False)
    sharpe_ratio = Column(Float)
    max_drawdown = Column(Float, nullable=False)
    trades_last_24h = Column(Integer, nullable=False)
    volume_7d = Column(String, nullable=False)
    preferred_tokens = Column(JSON)
    trading_patterns = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())
    run_id = Column(String, nullable=False)
