from typing import List
import logging
import os

from solders.pubkey import Pubkey

TRACKED_WALLETS_TEMPLATE = "# Add wallet addresses to track (one per line)\n"


def load_tracked_wallets(file_path: str, logger: logging.Logger = None) -> List[str]:
    """
    Load wallet addresses, one per line.

    Blank lines and `#` comments are ignored. Invalid addresses are logged and
    skipped. A missing file is created with a comment header and yields no wallets.
    """
    logger = logger or logging.getLogger(__name__)

    if not os.path.exists(file_path):
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(file_path, "w") as f:
            f.write(TRACKED_WALLETS_TEMPLATE)
        logger.warning(f"Created empty wallet list at {file_path}")
        return []

    wallets = []
    seen = set()
    with open(file_path, "r") as f:
        for line_number, line in enumerate(f, start=1):
            entry = line.strip()
            if not entry or entry.startswith("#"):
                continue
            try:
                Pubkey.from_string(entry)
            except ValueError as e:
                logger.warning(f"Invalid wallet on line {line_number} of {file_path}: {entry} ({str(e)})")
                continue
            if entry in seen:
                continue
            seen.add(entry)
            wallets.append(entry)

    logger.info(f"Loaded {len(wallets)} tracked wallets")
    return wallets
