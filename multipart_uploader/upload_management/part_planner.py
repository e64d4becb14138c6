"""Part size and count planning for multipart uploads."""

from collections.abc import Iterator
from typing import NamedTuple


class PartPlan(NamedTuple):
    """Layout of a payload split into 1-based parts."""

    total_size_bytes: int
    part_size_bytes: int
    total_parts: int

    def byte_range(self, part_number: int) -> tuple[int, int]:
        """Return the half-open ``(start, end)`` byte range of a part.

        Raises:
            ValueError: If ``part_number`` is outside ``1..total_parts``.
        """
        if not 1 <= part_number <= self.total_parts:
            raise ValueError(
                f"part_number must be in 1..{self.total_parts}, got {part_number}"
            )
        start = (part_number - 1) * self.part_size_bytes
        end = min(start + self.part_size_bytes, self.total_size_bytes)
        return start, end

    def part_numbers(self) -> Iterator[int]:
        """Iterate over every part number in ascending order."""
        return iter(range(1, self.total_parts + 1))


def plan_parts(
    total_size_bytes: int, min_part_size_bytes: int, max_parts: int
) -> PartPlan:
    """Compute the part size and count for a payload.

    The part size grows with ``total_size_bytes / max_parts`` so the part count
    never exceeds ``max_parts``. An empty payload still gets one (empty) part.

    Args:
        total_size_bytes: Size of the whole payload.
        min_part_size_bytes: Smallest part the storage service accepts.
        max_parts: Upper bound on the number of parts.

    Returns:
        The resulting ``PartPlan``.

    Raises:
        ValueError: If a size bound is not positive or the payload size is negative.
    """
    if total_size_bytes < 0:
        raise ValueError(f"total_size_bytes must be >= 0, got {total_size_bytes}")
    if min_part_size_bytes <= 0:
        raise ValueError(
            f"min_part_size_bytes must be positive, got {min_part_size_bytes}"
        )
    if max_parts <= 0:
        raise ValueError(f"max_parts must be positive, got {max_parts}")

    part_size_bytes = min_part_size_bytes + total_size_bytes // max_parts
    if total_size_bytes == 0:
        return PartPlan(0, part_size_bytes, 1)

    total_parts = -(-total_size_bytes // part_size_bytes)
    return PartPlan(total_size_bytes, part_size_bytes, total_parts)
