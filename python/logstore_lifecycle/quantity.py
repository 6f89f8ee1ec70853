"""
Parsing of Kubernetes-style resource quantities ("100Gi", "500M", "1.5T").

Only the subset used for storage requests is supported: plain integers or
decimals, binary suffixes (Ki..Ei), decimal suffixes (k..E) and exponents.
"""

from __future__ import annotations

import re
from decimal import ROUND_CEILING, Decimal, InvalidOperation

from logstore_lifecycle.exceptions import ConfigError

GIB = 1024**3

_BINARY_SUFFIXES = {
    "Ki": 1024,
    "Mi": 1024**2,
    "Gi": 1024**3,
    "Ti": 1024**4,
    "Pi": 1024**5,
    "Ei": 1024**6,
}

_DECIMAL_SUFFIXES = {
    "": 1,
    "k": 10**3,
    "M": 10**6,
    "G": 10**9,
    "T": 10**12,
    "P": 10**15,
    "E": 10**18,
}

_QUANTITY_RE = re.compile(r"^(?P<number>[+]?\d+(?:\.\d+)?)(?P<suffix>[KMGTPE]i|[kMGTPE]|[eE][+-]?\d+)?$")


def parse_quantity(value: str) -> int:
    """
    Convert a quantity string to a whole number of bytes.

    Fractional results are rounded up, matching how the API server reports
    the value of a quantity.

    Raises:
        ConfigError: If the string is not a valid quantity.
    """
    text = value.strip()
    match = _QUANTITY_RE.match(text)
    if match is None:
        raise ConfigError.validation_failed("storage_request", value, "not a valid quantity")

    try:
        number = Decimal(match.group("number"))
    except InvalidOperation as e:
        raise ConfigError.validation_failed("storage_request", value, str(e)) from e

    suffix = match.group("suffix") or ""
    if suffix in _BINARY_SUFFIXES:
        result = number * _BINARY_SUFFIXES[suffix]
    elif suffix in _DECIMAL_SUFFIXES:
        result = number * _DECIMAL_SUFFIXES[suffix]
    else:
        result = number.scaleb(int(suffix[1:]))

    return int(result.to_integral_value(rounding=ROUND_CEILING))
