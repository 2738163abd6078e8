"""
Embedding comparison: Euclidean distance and a fixed acceptance threshold.
"""
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from faceauth.config import MATCH_THRESHOLD


@dataclass(frozen=True)
class MatchResult:
    distance: float
    matched: bool
    threshold: float


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """sqrt(sum((a[i] - b[i])^2)); both vectors must have the same length."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Embedding length mismatch: {va.shape} vs {vb.shape}")
    return float(np.linalg.norm(va - vb))


class Matcher:
    """Stateless; lower distance means more similar, accepted when distance <= threshold."""

    def __init__(self, threshold: float = MATCH_THRESHOLD):
        self.threshold = threshold

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        return euclidean_distance(a, b)

    def is_match(self, distance: float) -> bool:
        return distance <= self.threshold

    def compare(self, a: Sequence[float], b: Sequence[float]) -> MatchResult:
        distance = self.distance(a, b)
        return MatchResult(distance=distance, matched=self.is_match(distance), threshold=self.threshold)
