"""Type coercion helpers exposed to expressions as ``int``, ``float``, ``bool`` and ``json``.

String values read from documents stay strings, so ``${count} + 1`` with
``count: "4"`` concatenates. Wrap with a helper to get arithmetic instead:

    ".next": "int(${count}) + 1"      # 5

Conversions that cannot produce a number return None.
"""

import json
import math
import re
from typing import Any

_INT_PREFIX = re.compile(r"^[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

FALSE_WORDS = frozenset({"false", "no", "off", "disabled", "0", ""})
TRUE_WORDS = frozenset({"true", "yes", "on", "enabled", "1"})


def _as_text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def to_int(value: Any) -> int | None:
    """Parse the leading integer of a value; ``"42px"`` gives 42, ``3.9`` gives 3."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)

    match = _INT_PREFIX.match(_as_text(value).strip())
    return int(match.group()) if match else None


def to_float(value: Any) -> float | None:
    """Parse the leading float of a value; ``"1.5e-2"`` gives 0.015."""
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)

    match = _FLOAT_PREFIX.match(_as_text(value).strip())
    return float(match.group()) if match else None


def to_bool(value: Any) -> bool:
    """Truthiness with word recognition: "no", "off", "disabled" and "0" are False."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in FALSE_WORDS:
            return False
        return True
    return True


def parse_json(value: str) -> Any:
    """Parse a JSON string.

    Raises:
        ValueError: If the input is not valid JSON
    """
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        preview = str(value)[:100] + ("..." if len(str(value)) > 100 else "")
        raise ValueError(f"Failed to parse JSON: {e}\nInput: {preview}") from e


def stringify(value: Any) -> str:
    """Render a value for text interpolation.

    None renders as ``undefined``, booleans as ``true``/``false``, integral
    floats without a fraction, containers as compact JSON.
    """
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


COERCION_HELPERS = {
    "int": to_int,
    "float": to_float,
    "bool": to_bool,
    "json": parse_json,
}
