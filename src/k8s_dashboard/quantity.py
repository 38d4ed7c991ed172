"""
Kubernetes resource quantity normalization.

CPU quantities normalize to milli-cores and memory-like quantities (memory,
ephemeral storage, volume capacity) to bytes. Every other module converts
through here; nothing else knows about unit suffixes.
"""

import math
from decimal import Decimal
from enum import Enum
from typing import Any


class QuantityKind(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"


# Two-character suffixes come first so "Mi" is never read as "M".
_BYTE_SUFFIXES: tuple[tuple[str, float], ...] = (
    ("Ki", 1024.0),
    ("Mi", 1024.0**2),
    ("Gi", 1024.0**3),
    ("Ti", 1024.0**4),
    ("Pi", 1024.0**5),
    ("Ei", 1024.0**6),
    ("k", 1e3),
    ("K", 1e3),
    ("M", 1e6),
    ("G", 1e9),
    ("T", 1e12),
    ("P", 1e15),
    ("E", 1e18),
    ("m", 1e-3),
)

# Divisors that take a suffixed CPU value to milli-cores.
_CPU_SUFFIXES: tuple[tuple[str, float], ...] = (
    ("n", 1_000_000.0),
    ("u", 1_000.0),
    ("m", 1.0),
)

MILLI_CORES_PER_CORE = 1000.0
BYTES_PER_MEBIBYTE = 1024.0**2


def _as_text(raw: Any) -> str:
    if raw is None or isinstance(raw, bool):
        return ""
    if isinstance(raw, (tuple, list)) and len(raw) == 2:
        amount, unit = raw
        return f"{_as_text(amount)}{unit or ''}"
    if isinstance(raw, (int, float, Decimal)):
        return format(raw, "f") if isinstance(raw, Decimal) else repr(raw)
    return str(raw).strip()


def _safe_float(text: str) -> float:
    try:
        value = float(text.strip())
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def to_milli_cores(raw: Any) -> float:
    """
    Convert a CPU quantity to milli-cores.

    Args:
        raw: "2", "0.5", "500m", "500000u", "5000000n", a number of cores,
            or an (amount, unit) pair

    Returns:
        Milli-cores, or 0.0 when the value is absent or unparseable
    """
    text = _as_text(raw).lower()
    if not text:
        return 0.0
    for suffix, divisor in _CPU_SUFFIXES:
        if text.endswith(suffix):
            return _safe_float(text[: -len(suffix)]) / divisor
    return _safe_float(text) * MILLI_CORES_PER_CORE


def to_bytes(raw: Any) -> float:
    """
    Convert a memory or storage quantity to bytes.

    Suffixes are case-sensitive: "Mi" is mebibytes, "M" megabytes and "m"
    milli-bytes. A bare number is already bytes.
    """
    text = _as_text(raw)
    if not text:
        return 0.0
    for suffix, multiplier in _BYTE_SUFFIXES:
        if text.endswith(suffix):
            return _safe_float(text[: -len(suffix)]) * multiplier
    return _safe_float(text)


def to_mebibytes(raw: Any) -> float:
    # Display-only; bytes are canonical.
    return to_bytes(raw) / BYTES_PER_MEBIBYTE


def bytes_to_mebibytes(value: float) -> float:
    return value / BYTES_PER_MEBIBYTE


def normalize(raw: Any, kind: QuantityKind) -> float:
    """Normalize a quantity of the given kind to its canonical unit."""
    if kind is QuantityKind.CPU:
        return to_milli_cores(raw)
    return to_bytes(raw)


def kind_for_resource(resource_key: str) -> QuantityKind:
    return QuantityKind.CPU if resource_key == "cpu" else QuantityKind.MEMORY
