from typing import List, Sequence

from core.types import Position

SCALPING_MAX_HOLD_SECONDS = 3600
SWING_MIN_HOLD_SECONDS = 86400


def detect_patterns(positions: Sequence[Position]) -> List[str]:
    """Label a wallet's trading style from its average hold time"""
    hold_times = [p.hold_time_seconds for p in positions if p.hold_time_seconds is not None]
    if not hold_times:
        return []

    avg_hold = sum(hold_times) / len(hold_times)
    patterns = []
    if avg_hold < SCALPING_MAX_HOLD_SECONDS:
        patterns.append("Scalping")
    if avg_hold > SWING_MIN_HOLD_SECONDS:
        patterns.append("Swing Trading")
    return patterns
