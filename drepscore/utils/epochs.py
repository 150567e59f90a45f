"""
Epoch clock for Cardano mainnet.

Maps Unix timestamps to epoch numbers. Epochs have been a fixed 5 days
since the Shelley hard fork, so the mapping is a single division anchored
at the first Shelley epoch.
"""

import time
from typing import Optional

SHELLEY_GENESIS_TIMESTAMP = 1596491091  # first second of epoch 209
EPOCH_LENGTH_SECONDS = 432_000  # 5 days
SHELLEY_BASE_EPOCH = 209


def epoch_of(timestamp: float) -> int:
    """Epoch number containing the given Unix timestamp (seconds).

    Example:
        epoch_of(1596491091)          → 209
        epoch_of(1596491091 + 432000) → 210
    """
    return int((timestamp - SHELLEY_GENESIS_TIMESTAMP) // EPOCH_LENGTH_SECONDS) + SHELLEY_BASE_EPOCH


def epoch_start(epoch: int) -> int:
    """Unix timestamp of the first second of an epoch."""
    return SHELLEY_GENESIS_TIMESTAMP + (epoch - SHELLEY_BASE_EPOCH) * EPOCH_LENGTH_SECONDS


def current_epoch(now: Optional[float] = None) -> int:
    """Epoch for `now` (defaults to wall-clock time)."""
    return epoch_of(time.time() if now is None else now)
