"""
converge-wait

Waits for eventually-consistent remote state to satisfy a condition, polling
at a fixed interval until it does, fails, or times out.
"""

__version__ = "0.1.0"

from .config import RetryInterval, Settings, Timeout, WaitConfiguration
from .exceptions import (
    ConvergeWaitError,
    DeadlineExceededError,
    HardInputError,
    WaitCancelledError,
)
from .polling import Criterion, WaitResult, poll, poll_until
from .waiter import Waiter

__all__ = [
    "Settings",
    "WaitConfiguration",
    "RetryInterval",
    "Timeout",
    "Waiter",
    "Criterion",
    "WaitResult",
    "poll",
    "poll_until",
    "ConvergeWaitError",
    "DeadlineExceededError",
    "HardInputError",
    "WaitCancelledError",
]
