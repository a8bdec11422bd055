import pytest

from core.errors import PersistenceError
from run_trading_system import InitTradingSystem
from utils.config import Config
from utils.logger import TradingLogger


def test_unreadable_ledger_aborts_startup(tmp_path):
    ledger = tmp_path / "history.json"
    ledger.write_text('{"closed_trades": [')
    config = Config(str(tmp_path / "missing.yaml"), env={})
    config.paths.trade_history_path = str(ledger)
    config.paths.tracked_wallets_path = str(tmp_path / "wallets.txt")
    init_system = InitTradingSystem(config, TradingLogger("startup_test", log_dir=str(tmp_path / "logs")))

    with pytest.raises(PersistenceError):
        init_system.build()

    assert ledger.read_text() == '{"closed_trades": ['
    assert init_system.trading_bot is None
