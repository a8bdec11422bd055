class TradingError(Exception):
    """Base class for all errors raised by the trading engine"""


class FetchError(TradingError):
    """Network or API failure while fetching external data"""


class RateLimitExceeded(FetchError):
    pass


class Timeout(FetchError):
    pass


class ParseError(TradingError):
    """Malformed external payload"""


class ExecutionError(TradingError):
    """Trade submission failed"""


class ConfigError(TradingError):
    pass


class PersistenceError(TradingError):
    """Trade ledger could not be read or written"""


class BacktestError(TradingError):
    pass
