"""
Polling core of converge-wait.

This package contains the poll engine, criteria composition and baseline
tracking that every wait is built from.
"""

from .baseline import BaselineStore, baseline_key
from .criteria import Criterion, match_all
from .engine import Continue, Fail, Success, WaitResult, poll, poll_until

__all__ = [
    "BaselineStore",
    "baseline_key",
    "Criterion",
    "match_all",
    "Continue",
    "Fail",
    "Success",
    "WaitResult",
    "poll",
    "poll_until",
]
