"""Scaled number codec.

Every number read from an input file is stored pre-multiplied by
``10 ** scaling_factor`` so that downstream arithmetic runs on values of
comparable magnitude.  Only the output boundary divides the factor back
out.

Functions
---------
parse_number
    Parse a decimal or scientific-notation string into a scaled float.
format_number
    Format a (possibly scaled) float at a fixed number of decimals.
decimal_places
    Count the digits after the decimal point of a numeric string.
scale, descale
    Apply or remove the scaling factor.
round_half_away
    Round half away from zero.
"""

import math
import re
from typing import Union

from .constants import DEFAULT_SCALING_FACTOR, MISSING_SENTINELS
from .errors import ParseError

_MANTISSA_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)$")
_EXPONENT_RE = re.compile(r"^[+-]?\d+$")


def _pow10(value: float, power: int) -> float:
    # Dividing by an exact power of ten keeps negative powers correctly rounded.
    if power >= 0:
        return value * 10.0 ** power
    return value / 10.0 ** (-power)


def parse_number(text: Union[str, float, int], scaling_factor: int = DEFAULT_SCALING_FACTOR) -> float:
    """Parse ``text`` into a float multiplied by ``10 ** scaling_factor``.

    Parameters
    ----------
    text : str
        Raw cell content, e.g. ``"0.125"``, ``"1.5E-3"`` or ``" 42 "``.
        All whitespace is removed before parsing.
    scaling_factor : int
        Base-10 exponent applied to the parsed value.

    Returns
    -------
    float
        ``mantissa * 10 ** (scaling_factor + exponent)``.  Missing-value
        sentinels (``""``, ``"NA"``, ``"N/A"``, ``"x"``, ``"X"``, ``"-"``)
        decode to ``0.0``.

    Raises
    ------
    ParseError
        If the text is neither a number nor a sentinel.
    """
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return _pow10(float(text), scaling_factor)

    raw = str(text)
    s = "".join(raw.split())
    if s in MISSING_SENTINELS:
        return 0.0

    parts = re.split(r"[eE]", s)
    if len(parts) > 2 or not _MANTISSA_RE.match(parts[0]):
        raise ParseError(f"cannot parse number {raw!r}", token=raw)

    exponent = 0
    if len(parts) == 2:
        if not _EXPONENT_RE.match(parts[1]):
            raise ParseError(f"cannot parse exponent of {raw!r}", token=raw)
        exponent = int(parts[1])

    return _pow10(float(parts[0]), scaling_factor + exponent)


def try_parse_number(text: str, scaling_factor: int = DEFAULT_SCALING_FACTOR):
    """Like :func:`parse_number` but return ``None`` instead of raising."""
    try:
        return parse_number(text, scaling_factor)
    except ParseError:
        return None


def decimal_places(text: str) -> int:
    """Return the number of digits after the decimal point in ``text``."""
    s = "".join(str(text).split())
    mantissa = re.split(r"[eE]", s)[0]
    if "." not in mantissa:
        return 0
    return len(mantissa.split(".", 1)[1])


def scale(value: float, scaling_factor: int) -> float:
    return _pow10(float(value), scaling_factor)


def descale(value: float, scaling_factor: int) -> float:
    return _pow10(float(value), -scaling_factor)


def format_number(value: float, precision: int, scaling_factor: int = 0) -> str:
    """Format ``value`` with ``precision`` decimals.

    When ``scaling_factor`` is given the value is first divided by
    ``10 ** scaling_factor``.
    """
    if scaling_factor:
        value = descale(value, scaling_factor)
    return f"{value:.{precision}f}"


def round_half_away(x: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))
