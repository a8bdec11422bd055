from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import os

from dotenv import load_dotenv
import yaml

from core.errors import ConfigError

@dataclass
class StrategyConfig:
    min_smart_money_score: float = 0.8      # Wallets below this never feed signals
    convergence_threshold: int = 3          # Distinct wallets needed for a signal
    time_window_minutes: int = 60
    min_signal_confidence: float = 0.85     # Signals worth a market/security lookup
    min_combined_confidence: float = 0.75   # (signal + chart) / 2 must beat this
    trade_history_limit: int = 50           # Transactions pulled per wallet
    analysis_interval_seconds: int = 300
    portfolio_update_every_cycles: int = 10

@dataclass
class RiskParameters:
    """Risk management parameters"""
    starting_capital: Decimal = Decimal("10")
    position_size: Decimal = Decimal("10")     # Fixed size of every paper position
    max_positions: int = 5                     # Maximum number of concurrent positions
    stop_loss_factor: Decimal = Decimal("0.9") # Stop loss as a fraction of suggested entry

@dataclass
class DataSourcesConfig:
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    dexscreener_api_url: str = "https://api.dexscreener.com/latest"
    rugcheck_api_url: str = "https://api.rugcheck.xyz/v1"
    request_timeout_seconds: float = 10.0
    token_cache_ttl_seconds: float = 60.0
    security_cache_ttl_seconds: float = 300.0

@dataclass
class MonitoringConfig:
    telegram_enabled: bool = False
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    log_level: str = "INFO"
    log_dir: str = "data/logs"
    console_output: bool = True

@dataclass
class PathsConfig:
    tracked_wallets_path: str = "tracked_wallets.txt"
    trade_history_path: str = "trade_history.json"
    trades_csv_path: str = "data/trades/closed_trades.csv"
    db_url: Optional[str] = None

# env var -> (section, field)
ENV_OVERRIDES = {
    "SOLANA_RPC_URL": ("data_sources", "rpc_url"),
    "DEXSCREENER_API_URL": ("data_sources", "dexscreener_api_url"),
    "RUGCHECK_API_URL": ("data_sources", "rugcheck_api_url"),
    "MIN_SMART_MONEY_SCORE": ("strategy", "min_smart_money_score"),
    "WALLET_ANALYSIS_INTERVAL": ("strategy", "analysis_interval_seconds"),
    "MAX_POSITION_SIZE_USD": ("risk", "position_size"),
    "STARTING_CAPITAL": ("risk", "starting_capital"),
    "TELEGRAM_ENABLED": ("monitoring", "telegram_enabled"),
    "TELEGRAM_BOT_TOKEN": ("monitoring", "telegram_bot_token"),
    "TELEGRAM_CHAT_ID": ("monitoring", "telegram_chat_id"),
    "LOG_LEVEL": ("monitoring", "log_level"),
    "DB_URL": ("paths", "db_url"),
}

SECTIONS = {
    "strategy": StrategyConfig,
    "risk": RiskParameters,
    "data_sources": DataSourcesConfig,
    "monitoring": MonitoringConfig,
    "paths": PathsConfig,
}


def _coerce(value: Any, default: Any, name: str) -> Any:
    """Convert a raw YAML/env value to the type of the field's default"""
    if value is None:
        return None
    try:
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in ("1", "true", "yes", "on"):
                return True
            if text in ("0", "false", "no", "off"):
                return False
            raise ValueError(value)
        if isinstance(default, Decimal):
            return Decimal(str(value))
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        return str(value)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e


def _build_section(cls, values: Dict[str, Any], section: str):
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {', '.join(sorted(unknown))}")
    kwargs = {k: _coerce(v, getattr(defaults, k), f"{section}.{k}") for k, v in values.items()}
    return cls(**kwargs)


class Config:
    def __init__(self, config_path: str = "config.yaml", env: Optional[Dict[str, str]] = None):
        self.strategy = StrategyConfig()
        self.risk = RiskParameters()
        self.data_sources = DataSourcesConfig()
        self.monitoring = MonitoringConfig()
        self.paths = PathsConfig()
        self.trading_enabled = False

        if os.path.exists(config_path):
            self.load_config(config_path)

        if env is None:
            load_dotenv()
            env = dict(os.environ)
        self.apply_env(env)
        self.validate()

    def load_config(self, config_path: str):
        """Load configuration from YAML file"""
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read {config_path}: {str(e)}") from e

        if not isinstance(config_data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")

        for section, values in config_data.items():
            if section == "trading_enabled":
                self.trading_enabled = _coerce(values, False, section)
            elif section in SECTIONS:
                setattr(self, section, _build_section(SECTIONS[section], values, section))
            else:
                raise ConfigError(f"Unknown config section '{section}'")

    def apply_env(self, env: Dict[str, str]):
        """Environment variables win over the YAML file"""
        if env.get("TRADING_ENABLED"):
            self.trading_enabled = _coerce(env["TRADING_ENABLED"], False, "TRADING_ENABLED")

        for var, (section, name) in ENV_OVERRIDES.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            target = getattr(self, section)
            default = getattr(SECTIONS[section](), name)
            if default is None:
                setattr(target, name, raw)
            else:
                setattr(target, name, _coerce(raw, default, var))

    def validate(self):
        if self.monitoring.telegram_enabled and not (self.monitoring.telegram_bot_token and self.monitoring.telegram_chat_id):
            raise ConfigError("Telegram is enabled but TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is missing")
        if self.risk.position_size <= 0:
            raise ConfigError("risk.position_size must be positive")
        if self.risk.starting_capital <= 0:
            raise ConfigError("risk.starting_capital must be positive")
        if self.strategy.convergence_threshold < 1:
            raise ConfigError("strategy.convergence_threshold must be at least 1")
