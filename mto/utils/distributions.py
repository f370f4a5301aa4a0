from __future__ import annotations

import math
from statistics import NormalDist
from typing import Iterable, Optional


def z_for_quantile(q: float) -> float:
    """One-sided z-score with P(Z > z) = q."""
    if not 0.0 < q < 0.5:
        raise ValueError(f"Tail quantile must be in (0, 0.5), got {q}")
    return NormalDist().inv_cdf(1.0 - q)


def population_std(values: Iterable[float]) -> Optional[float]:
    vals = [float(v) for v in values]
    if len(vals) < 2:
        return None
    mean = sum(vals) / len(vals)
    return math.sqrt(sum((v - mean) ** 2 for v in vals) / len(vals))
