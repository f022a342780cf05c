"""
Glue turning collaborator calls into poll functions.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from .criteria import Criterion, failed_criteria, first_match, match_all
from .engine import Continue, PollFunction, PollOutcome, Success

T = TypeVar("T")


def fetch_until(
    fetch: Callable[[], Awaitable[T]], criteria: Sequence[Criterion[T]] = ()
) -> PollFunction:
    """
    Build a poll function that fetches one object and checks it.

    Transient errors raised by ``fetch`` (object not found yet, transport
    failures) are left to the poll engine, which keeps polling.
    """

    async def poll_fn() -> PollOutcome:
        obj = await fetch()
        if match_all(obj, criteria):
            return Success(obj)
        return Continue(value=obj)

    return poll_fn


def list_until(
    list_candidates: Callable[[], Awaitable[list[T]]],
    criteria: Sequence[Criterion[T]],
    on_mismatch: Callable[[T, list[str]], None] | None = None,
) -> PollFunction:
    """
    Build a poll function that lists candidates and picks the first match.

    If given, ``on_mismatch`` is called with every candidate checked before
    the match and the names of the criteria it failed.
    """

    async def poll_fn() -> PollOutcome:
        candidates = await list_candidates()
        if on_mismatch is None:
            match = first_match(candidates, criteria)
            if match is not None:
                return Success(match)
            return Continue(value=candidates)

        for candidate in candidates:
            failed = failed_criteria(candidate, criteria)
            if not failed:
                return Success(candidate)
            on_mismatch(candidate, failed)
        return Continue(value=candidates)

    return poll_fn
