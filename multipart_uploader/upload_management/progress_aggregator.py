"""Aggregate per-part progress into a monotonic overall percentage."""

from collections.abc import Callable, Iterable


class ProgressAggregator:
    """Track per-part percentages and report overall progress.

    The overall value is ``floor(sum(part percentages) / total_parts)`` and is
    only reported when it strictly exceeds the last reported value. The
    starting value of a resumed upload is rounded half up instead.
    """

    def __init__(
        self,
        total_parts: int,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        """Initialise the aggregator.

        Args:
            total_parts: Number of parts in the upload.
            on_progress: Called with each new overall percentage.
        """
        if total_parts <= 0:
            raise ValueError(f"total_parts must be positive, got {total_parts}")
        self._total_parts = total_parts
        self._on_progress = on_progress
        self._parts: dict[int, int] = {}
        self._last_reported = 0

    @property
    def percentage(self) -> int:
        """Last overall percentage reported."""
        return self._last_reported

    def seed(self, part_numbers: Iterable[int]) -> int:
        """Mark already finished parts as complete before any transfer starts.

        Returns:
            The starting percentage. It is not passed to ``on_progress``; later
            updates are only reported once they exceed it.
        """
        for part_number in part_numbers:
            self._parts[part_number] = 100
        # Half up, so 2 of 3 parts start at 67
        doubled = 2 * sum(self._parts.values()) + self._total_parts
        rounded = doubled // (2 * self._total_parts)
        self._last_reported = max(self._last_reported, rounded)
        return self._last_reported

    def update(self, part_number: int, percentage: int) -> int | None:
        """Record a part's percentage.

        Returns:
            The new overall percentage if it increased, otherwise None.
        """
        self._parts[part_number] = max(0, min(100, int(percentage)))
        overall = self._overall()
        if overall <= self._last_reported:
            return None
        self._last_reported = overall
        if self._on_progress is not None:
            self._on_progress(overall)
        return overall

    def update_from_bytes(
        self, part_number: int, bytes_sent: int, bytes_total: int
    ) -> int | None:
        """Record a part's progress from byte counts."""
        if bytes_total <= 0:
            return self.update(part_number, 100)
        return self.update(part_number, round(bytes_sent * 100 / bytes_total))

    def _overall(self) -> int:
        return sum(self._parts.values()) // self._total_parts
