"""
Vector similarity over possibly mismatched dimensions.

Vectors produced by different providers have different lengths (384, 1536,
≤100). cosine_similarity() compares only the shared prefix: both vectors are
cut to the shorter length before the dot product. This is a documented
compromise, not a projection; scores across providers are approximate.
"""

from __future__ import annotations

import math
from typing import Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between the common-length prefixes of `a` and `b`.

    Returns exactly 0.0 when either input is empty or either prefix has zero
    norm. Never raises on numeric edge cases.
    """
    length = min(len(a), len(b))
    if length == 0:
        return 0.0

    dot = norm_a = norm_b = 0.0
    for i in range(length):
        x, y = float(a[i]), float(b[i])
        dot    += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    if math.isnan(score):
        return 0.0
    return score


def clamp_unit(score: float) -> float:
    """Clamp a similarity into [0, 1]; negative correlation counts as no match."""
    return max(0.0, min(1.0, score))
