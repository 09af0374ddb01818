from __future__ import annotations

from .geometry import (
    COMPATIBILITY_LIMITS,
    LATEST_LIMITS,
    GridLimits,
    Rectangle,
    clamp,
    limits_for,
)

__all__ = [
    "COMPATIBILITY_LIMITS",
    "GridLimits",
    "LATEST_LIMITS",
    "Rectangle",
    "clamp",
    "limits_for",
]
