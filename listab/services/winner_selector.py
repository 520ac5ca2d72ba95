"""
Winner Selection

Ranks the variants of an experiment by a confidence-weighted engagement
score and decides whether a winner can be declared.

Scoring per variant:
- ctr = contacts / views
- fav_rate = favorites / views
- confidence = min(views / 100, 1)
- score = (0.7 * ctr + 0.3 * fav_rate) * (0.4 + 0.6 * confidence)

The confidence multiplier keeps a variant with a handful of views from
winning on a lucky ratio: it starts at 40% of the unweighted score and
only reaches 100% once the variant has 100 views.
"""

from dataclasses import dataclass, field
from typing import Any, List, Sequence

from listab.errors import InsufficientDataError, ValidationError

DEFAULT_MIN_TOTAL_VIEWS = 50
DEFAULT_MIN_VARIANT_VIEWS = 20

CONTACT_WEIGHT = 0.7
FAVORITE_WEIGHT = 0.3
CONFIDENCE_FLOOR = 0.4
CONFIDENCE_VIEWS = 100


@dataclass
class VariantScore:
    """Engagement score of a single variant."""
    variant_id: Any
    index: int
    views: int
    contacts: int
    favorites: int
    ctr: float
    fav_rate: float
    confidence: float
    score: float

    def to_dict(self) -> dict:
        return {
            "variant_id": str(self.variant_id),
            "index": self.index,
            "views": self.views,
            "contacts": self.contacts,
            "favorites": self.favorites,
            "ctr": self.ctr,
            "fav_rate": self.fav_rate,
            "confidence": self.confidence,
            "score": self.score,
        }


@dataclass
class WinnerSelection:
    """Outcome of a successful winner selection."""
    winner: Any
    ctr: float
    score: float
    total_views: int
    evaluated_count: int
    scores: List[VariantScore] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "winner_variant_id": str(self.winner.id),
            "winner_index": self.winner.index,
            "ctr": self.ctr,
            "score": self.score,
            "total_views": self.total_views,
            "evaluated_count": self.evaluated_count,
            "scores": [s.to_dict() for s in self.scores],
        }


def score_variant(variant: Any) -> VariantScore:
    """Compute the weighted engagement score for one variant."""
    views = variant.views or 0
    contacts = variant.contacts or 0
    favorites = variant.favorites or 0

    ctr = contacts / views if views > 0 else 0.0
    fav_rate = favorites / views if views > 0 else 0.0
    confidence = min(views / CONFIDENCE_VIEWS, 1.0)
    score = (CONTACT_WEIGHT * ctr + FAVORITE_WEIGHT * fav_rate) * (
        CONFIDENCE_FLOOR + (1 - CONFIDENCE_FLOOR) * confidence
    )

    return VariantScore(
        variant_id=variant.id,
        index=variant.index,
        views=views,
        contacts=contacts,
        favorites=favorites,
        ctr=ctr,
        fav_rate=fav_rate,
        confidence=confidence,
        score=score,
    )


def rank_variants(variants: Sequence[Any]) -> List[VariantScore]:
    """Score every variant, best first. Ties keep index order."""
    ordered = sorted(variants, key=lambda v: v.index)
    return sorted((score_variant(v) for v in ordered), key=lambda s: s.score, reverse=True)


def select_winner(
    variants: Sequence[Any],
    min_total_views: int = DEFAULT_MIN_TOTAL_VIEWS,
    min_variant_views: int = DEFAULT_MIN_VARIANT_VIEWS,
    allow_low_sample: bool = False,
) -> WinnerSelection:
    """
    Pick the best variant.

    Args:
        variants: Objects exposing id, index, views, contacts and favorites
        min_total_views: Views required across all variants
        min_variant_views: Views a variant needs to be a candidate
        allow_low_sample: Pick a best-effort winner even with sparse data

    Returns:
        WinnerSelection for the highest scoring candidate

    Raises:
        ValidationError: If there are no variants
        InsufficientDataError: If the sampling thresholds are not met
    """
    if not variants:
        raise ValidationError("Experiment has no variants")

    ordered = sorted(variants, key=lambda v: v.index)
    total_views = sum(v.views or 0 for v in ordered)

    if not allow_low_sample and total_views < min_total_views:
        raise InsufficientDataError(
            f"Not enough views: {total_views} collected, {min_total_views} required",
            collected=total_views,
            required=min_total_views,
        )

    candidates = [v for v in ordered if (v.views or 0) >= min_variant_views]
    if not candidates:
        if not allow_low_sample:
            best_views = max(v.views or 0 for v in ordered)
            raise InsufficientDataError(
                f"No variant reached {min_variant_views} views",
                collected=best_views,
                required=min_variant_views,
            )
        candidates = ordered

    scores = [score_variant(v) for v in candidates]

    # Strictly greater wins, so the lowest index takes exact ties
    best = 0
    for i, s in enumerate(scores):
        if s.score > scores[best].score:
            best = i

    return WinnerSelection(
        winner=candidates[best],
        ctr=scores[best].ctr,
        score=scores[best].score,
        total_views=total_views,
        evaluated_count=len(candidates),
        scores=scores,
    )
