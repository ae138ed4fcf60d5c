"""Lenient parsing of client supplied values."""

import math
import re
from typing import Any, Optional


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_NUMBER = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def parse_int(value: Any, default: int) -> int:
    """
    Parse the leading integer of a value.

    "12abc" -> 12, "2.7" -> 2, 3.9 -> 3. Anything else returns ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if value is None:
        return default

    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    return int(match.group(1))


def parse_number(value: str) -> Optional[float]:
    """Parse a plain decimal string, returning an int when it has no fraction."""
    if not isinstance(value, str) or not _NUMBER.match(value):
        return None
    number = float(value)
    if number.is_integer() and "." not in value and "e" not in value.lower():
        return int(number)
    return number


def is_coordinate_pair(value: Any) -> bool:
    """True for a 2-element sequence of finite, non-boolean numbers."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return False
    return all(
        isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
        for v in value
    )


_BRACKETED_KEY = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])+)$")


def nest_bracket_params(query: Optional[dict]) -> dict:
    """
    Expand ``price[gte]=1`` style keys into nested mappings.

    ``{"price[gte]": "1", "price[lte]": "9"}`` -> ``{"price": {"gte": "1", "lte": "9"}}``.
    A plain key wins over bracketed keys of the same name.
    """
    nested: dict[str, Any] = {}
    for key, value in (query or {}).items():
        match = _BRACKETED_KEY.match(str(key))
        if not match:
            nested[key] = value
            continue

        name, brackets = match.groups()
        parts = [name, *re.findall(r"\[([^\[\]]*)\]", brackets)]
        target = nested
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                if child is not None:
                    break
                child = target[part] = {}
            target = child
        else:
            target.setdefault(parts[-1], value)
    return nested


def parse_bounds(raw: Optional[str]) -> Optional[list[float]]:
    """
    Parse a ``"lng,lat"`` header value into a coordinate pair.

    Returns None when the value is missing; malformed parts become NaN so the
    pair fails ``is_coordinate_pair`` downstream.
    """
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return list(raw)

    parts = []
    for part in str(raw).split(","):
        try:
            parts.append(float(part))
        except ValueError:
            parts.append(math.nan)
    return parts
