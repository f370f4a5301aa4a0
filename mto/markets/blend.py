"""
Bounded market blend.

Shrinks the model mean toward the market consensus. More books raise the
market's weight, disagreement between books lowers it and widens sigma. The
market may nudge the estimate but never move it more than `mu_band` away
from the model, and an absent market leaves the model output untouched.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from mto.models import MarketFeatures
from mto.prediction.parameters import BlendParameters, EngineParameters
from mto.sports import Sport


@dataclass(frozen=True)
class BlendResult:
    mu: float
    sigma: float
    confidence_adjustment: float  # percentage points, <= 0
    weight: float


def clamp(lo: float, hi: float, value: float) -> float:
    return max(lo, min(hi, value))


def blend_weight(books: int, dispersion: float, bp: BlendParameters) -> float:
    book_bonus = min(bp.max_book_bonus, books / bp.book_saturation * bp.max_book_bonus)
    penalty = min(bp.max_dispersion_penalty, dispersion / bp.dispersion_scale)
    return clamp(bp.min_weight, bp.max_weight, bp.base_weight + book_bonus - penalty)


def bounded_market_blend(
    mu_model: float,
    sigma_model: float,
    market: Optional[MarketFeatures],
    sport: Sport,
    params: EngineParameters,
) -> BlendResult:
    """
    Blend the model mean with the market mean.

    Returns (mu_model, sigma_model, 0.0, 0.0) exactly when there is no usable
    market.
    """
    if (
        market is None
        or market.source == "none"
        or market.mean_total is None
        or not math.isfinite(market.mean_total)
    ):
        return BlendResult(mu=mu_model, sigma=sigma_model, confidence_adjustment=0.0, weight=0.0)

    bp = params.blend
    books = max(1, market.quote_count or 1)
    dispersion = market.std_total
    if dispersion is None or not math.isfinite(dispersion):
        dispersion = params.for_sport(sport).default_dispersion
    dispersion = max(0.0, dispersion)

    w = blend_weight(books, dispersion, bp)
    band = bp.mu_band * abs(mu_model)
    mu = clamp(mu_model - band, mu_model + band, (1.0 - w) * mu_model + w * market.mean_total)

    sigma = sigma_model
    if dispersion > bp.sigma_inflation_threshold:
        sigma *= bp.sigma_inflation
    if dispersion > bp.sigma_inflation_high_threshold:
        sigma *= bp.sigma_inflation_high

    adjustment = -min(bp.max_confidence_penalty, dispersion * bp.confidence_penalty_per_point)
    return BlendResult(mu=mu, sigma=sigma, confidence_adjustment=adjustment, weight=w)
