"""
Baseline tracking for metric delta assertions.

A baseline is the value a metric had when a test started watching it. Delta
waits are expressed relative to it, so callers never need to know the
absolute starting value.
"""

from collections.abc import Iterator

import structlog

from ..exceptions import HardInputError

logger = structlog.get_logger(__name__)


def label_pairs(label_and_values: tuple[str, ...] | list[str]) -> list[tuple[str, str]]:
    """
    Group a flat ``label, value, label, value, ...`` sequence into pairs.

    Raises:
        HardInputError: If the sequence has an odd length
    """
    if len(label_and_values) % 2 != 0:
        raise HardInputError(
            "`label_and_values` must be pairs of labels and values",
            context={"label_and_values": list(label_and_values)},
        )
    return [
        (label_and_values[i], label_and_values[i + 1])
        for i in range(0, len(label_and_values), 2)
    ]


def baseline_key(family: str, *label_and_values: str) -> str:
    """
    Build the key under which the baseline of a metric series is kept.

    The key is the family name followed by the label pairs sorted by label
    name, so the same series yields the same key whatever order the labels
    were passed in.
    """
    parts = [family]
    for label, value in sorted(label_pairs(label_and_values)):
        parts.extend((label, value))
    return ",".join(parts)


class BaselineStore:
    """
    Last captured value of each metric series, keyed by baseline_key().

    A strict store refuses to answer for a series that was never captured;
    a lenient one treats it as zero.
    """

    def __init__(
        self, values: dict[str, float] | None = None, strict: bool = True
    ) -> None:
        self._values: dict[str, float] = dict(values or {})
        self.strict = strict

    def set(self, key: str, value: float) -> None:
        self._values[key] = value
        logger.debug("Captured baseline", key=key, value=value)

    def get(self, key: str) -> float:
        """
        Get the baseline of a series.

        Raises:
            HardInputError: If the store is strict and no baseline was captured
        """
        if key in self._values:
            return self._values[key]
        if self.strict:
            raise HardInputError(
                f"no baseline captured for '{key}'",
                context={"captured": sorted(self._values)},
            )
        logger.warning("No baseline captured, assuming zero", key=key)
        return 0.0

    def copy(self) -> "BaselineStore":
        """Get an independent copy of this store."""
        return BaselineStore(self._values, strict=self.strict)

    def keys(self) -> list[str]:
        return sorted(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._values)
