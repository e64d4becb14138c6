"""Helpers for parsing configuration values."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def parse_bytes(value: int | str) -> int:
    """Parse a byte quantity from an integer or unit-suffixed string.

    Supported string units (case-insensitive):
        b, k, kb, m, mb, g, gb

    Args:
        value: Raw byte value as an ``int`` or string with an optional unit
            suffix.

    Returns:
        The parsed value in bytes.

    Raises:
        ValueError: If the input cannot be parsed or contains an unknown unit.
    """
    if isinstance(value, int):
        return value

    normalized_value = str(value).strip().lower()

    if normalized_value.isdigit():
        return int(normalized_value)

    numeric_part = ""
    unit_suffix = ""
    for character in normalized_value:
        if character.isdigit() and not unit_suffix:
            numeric_part += character
        else:
            unit_suffix += character

    if not numeric_part or not unit_suffix:
        raise ValueError(f"Invalid byte value: {value!r}")

    base_value = int(numeric_part)
    if unit_suffix == "b":
        multiplier = 1
    elif unit_suffix in {"k", "kb"}:
        multiplier = 1024
    elif unit_suffix in {"m", "mb"}:
        multiplier = 1024**2
    elif unit_suffix in {"g", "gb"}:
        multiplier = 1024**3
    else:
        raise ValueError(f"Unknown byte unit in value: {value!r}")

    return base_value * multiplier


def parse_header(value: str) -> tuple[str, str]:
    """Split a ``Name: value`` header string.

    Raises:
        ValueError: If there is no ``:`` separator or the name is empty.
    """
    name, separator, header_value = value.partition(":")
    if not separator or not name.strip():
        raise ValueError(f"Invalid header {value!r}; expected 'Name: value'")
    return name.strip(), header_value.strip()


def load_config_file(path: Path) -> dict[str, Any]:
    """Load raw configuration values from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the document is not a mapping.
    """
    with path.open("r") as config_file:
        data = yaml.safe_load(config_file) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data
