import logging
from datetime import datetime
import os

# HTTP clients that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "telegram.ext")


class TradingLogger:
    def __init__(self, name: str = "trading_bot", log_dir: str = "data/logs", console_output: bool = False, level: str = "INFO"):
        self.log_dir = log_dir
        os.makedirs(log_dir, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # Handlers are attached once per logger name
        if not self.logger.handlers:
            self._setup_handlers(name, console_output, level)

        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    def _setup_handlers(self, name: str, console_output: bool, level: str):
        if console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
            console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            self.logger.addHandler(console_handler)

        # Every run gets its own file with full debug output
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        file_handler = logging.FileHandler(os.path.join(self.log_dir, f'{name}_{timestamp}.log'))
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        self.logger.addHandler(file_handler)

    def child(self, suffix: str) -> logging.Logger:
        """Logger for a component, sharing this logger's handlers"""
        return self.logger.getChild(suffix)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)
