"""
Resource quantity strings.

Limits are written as plain decimal numbers (cores for cpu, bytes for memory
and storage). Reading accepts the Kubernetes suffix forms as well, since a
stored spec may have been edited outside meshplane.
"""

from __future__ import annotations

import math

_BINARY_SUFFIXES = {
    "Ki": 1024,
    "Mi": 1024 ** 2,
    "Gi": 1024 ** 3,
    "Ti": 1024 ** 4,
    "Pi": 1024 ** 5,
    "Ei": 1024 ** 6,
}

_DECIMAL_SUFFIXES = {
    "m": 1e-3,
    "k": 1e3,
    "K": 1e3,
    "M": 1e6,
    "G": 1e9,
    "T": 1e12,
    "P": 1e15,
    "E": 1e18,
}


def parse_quantity(value: str | int | float) -> float:
    """Parse a quantity such as ``"0.5"``, ``"500m"`` or ``"2Gi"`` into a float."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid quantity: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("Empty quantity")
        multiplier = 1.0
        for suffix, factor in _BINARY_SUFFIXES.items():
            if text.endswith(suffix):
                text, multiplier = text[: -len(suffix)], float(factor)
                break
        else:
            if text[-1] in _DECIMAL_SUFFIXES:
                text, multiplier = text[:-1], _DECIMAL_SUFFIXES[text[-1]]
        try:
            number = float(text) * multiplier
        except ValueError as exc:
            raise ValueError(f"Invalid quantity: {value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"Invalid quantity: {value!r}")
    return number


def format_cpu(cores: float) -> str:
    return str(float(cores))


def format_bytes(amount: int | float) -> str:
    return str(int(amount))
