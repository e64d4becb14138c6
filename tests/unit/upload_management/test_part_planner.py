import math

import pytest

from multipart_uploader.const import (
    BYTES_PER_MIB,
    DEFAULT_MAX_NUM_PARTS,
    DEFAULT_PART_MIN_SIZE_BYTES,
)
from multipart_uploader.upload_management.part_planner import PartPlan, plan_parts


def test_plan_parts_for_100_mib_payload_with_defaults() -> None:
    total = 100 * BYTES_PER_MIB

    plan = plan_parts(total, DEFAULT_PART_MIN_SIZE_BYTES, DEFAULT_MAX_NUM_PARTS)

    assert plan.part_size_bytes == DEFAULT_PART_MIN_SIZE_BYTES + total // 96
    assert plan.total_parts == math.ceil(total / plan.part_size_bytes)
    assert plan.total_parts == 10
    assert plan.total_size_bytes == total


@pytest.mark.parametrize(
    "total_size_bytes",
    [1, 999, 10 * BYTES_PER_MIB, 25_000_000, 1024 * BYTES_PER_MIB, 50 * 1024**3],
)
def test_part_count_never_exceeds_max_parts(total_size_bytes: int) -> None:
    plan = plan_parts(total_size_bytes, 5 * BYTES_PER_MIB, DEFAULT_MAX_NUM_PARTS)

    assert 1 <= plan.total_parts <= DEFAULT_MAX_NUM_PARTS
    assert plan.part_size_bytes >= 5 * BYTES_PER_MIB


def test_25_mb_payload_is_split_by_formula() -> None:
    plan = plan_parts(25_000_000, DEFAULT_PART_MIN_SIZE_BYTES, DEFAULT_MAX_NUM_PARTS)

    assert plan.part_size_bytes == 10_746_176
    assert plan.total_parts == 3


def test_payload_smaller_than_min_part_is_one_part() -> None:
    plan = plan_parts(4096, DEFAULT_PART_MIN_SIZE_BYTES, DEFAULT_MAX_NUM_PARTS)

    assert plan.total_parts == 1
    assert plan.byte_range(1) == (0, 4096)


def test_empty_payload_gets_one_empty_part() -> None:
    plan = plan_parts(0, DEFAULT_PART_MIN_SIZE_BYTES, DEFAULT_MAX_NUM_PARTS)

    assert plan.total_parts == 1
    assert plan.byte_range(1) == (0, 0)


def test_byte_ranges_cover_payload_without_gaps() -> None:
    plan = plan_parts(100, 10, 4)

    ranges = [plan.byte_range(n) for n in plan.part_numbers()]

    assert plan.part_size_bytes == 35
    assert ranges == [(0, 35), (35, 70), (70, 100)]


def test_last_part_is_truncated_to_payload_end() -> None:
    plan = PartPlan(total_size_bytes=25, part_size_bytes=10, total_parts=3)

    assert plan.byte_range(3) == (20, 25)


@pytest.mark.parametrize("part_number", [0, 4, -1])
def test_byte_range_rejects_unknown_parts(part_number: int) -> None:
    plan = PartPlan(total_size_bytes=25, part_size_bytes=10, total_parts=3)

    with pytest.raises(ValueError):
        plan.byte_range(part_number)


def test_part_numbers_are_one_based_and_ascending() -> None:
    plan = PartPlan(total_size_bytes=25, part_size_bytes=10, total_parts=3)

    assert list(plan.part_numbers()) == [1, 2, 3]


@pytest.mark.parametrize(
    ("total", "min_part", "max_parts"),
    [(-1, 10, 4), (100, 0, 4), (100, 10, 0)],
)
def test_plan_parts_rejects_invalid_bounds(
    total: int, min_part: int, max_parts: int
) -> None:
    with pytest.raises(ValueError):
        plan_parts(total, min_part, max_parts)
