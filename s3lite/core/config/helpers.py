"""Helpers for parsing configuration values."""

_UNIT_MULTIPLIERS: dict[str, int] = {
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "kib": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "mib": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
    "gib": 1024**3,
}


def parse_bytes(value: int | str) -> int:
    """Parse a byte quantity from an integer or unit-suffixed string.

    Supported string units (case-insensitive):
        b, k, kb, kib, m, mb, mib, g, gb, gib

    Args:
        value: Raw byte value as an ``int`` or string such as ``"7mb"``.

    Returns:
        The parsed value in bytes.

    Raises:
        ValueError: If the input cannot be parsed, uses an unknown unit,
            or is negative.
    """
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Byte value must not be negative: {value!r}")
        return value

    normalized_value = str(value).strip().lower().replace(" ", "")
    if normalized_value.isdigit():
        return int(normalized_value)

    split_at = len(normalized_value)
    for index, character in enumerate(normalized_value):
        if not character.isdigit():
            split_at = index
            break

    numeric_part = normalized_value[:split_at]
    unit_suffix = normalized_value[split_at:]
    if not numeric_part or unit_suffix not in _UNIT_MULTIPLIERS:
        raise ValueError(f"Invalid byte value: {value!r}")

    return int(numeric_part) * _UNIT_MULTIPLIERS[unit_suffix]
