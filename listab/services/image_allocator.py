"""
Image Set Allocation

Turns an unordered pool of candidate photos into ranked image sets that
fit the listing's slot limit. Each set is one candidate "look" for a
variant; the first image of a set is its cover.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import structlog

from listab.config import Settings, get_settings
from listab.errors import ValidationError
from listab.integrations.image_scorer import FallbackImageScorer, ImageAssessment, ImageScorer

logger = structlog.get_logger()

# Illustrative engagement predictions per generated set. They are not
# measured and only order the sets until real rotation data exists.
PREDICTED_ENGAGEMENT_PRIMARY = 75
PREDICTED_ENGAGEMENT_COVER_TEST = 65
PREDICTED_ENGAGEMENT_MIXED = 60

IMAGE_REQUIREMENTS = {
    "format": ["jpg", "jpeg", "png", "gif"],
    "max_file_size": "25 MB",
    "min_resolution": "1600x1200",
    "optimal_resolution": "1920x1440",
    "note": "First image is the cover shown in search results",
}


@dataclass
class ImageSet:
    """Ordered images for one variant plus why it was built that way."""
    images: List[str]
    rationale: str
    predicted_engagement: int
    assessments: List[ImageAssessment] = field(default_factory=list)

    @property
    def cover_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "images": self.images,
            "rationale": self.rationale,
            "predicted_engagement": self.predicted_engagement,
            "cover_image": self.cover_image,
            "image_count": len(self.images),
        }


class CategorySlotLimits:
    """Category to image-slot-limit lookup; unknown categories get the default."""

    def __init__(self, limits: Optional[Dict[str, int]] = None, default: int = 10):
        self.limits = dict(limits or {})
        self.default = default

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CategorySlotLimits":
        settings = settings or get_settings()
        return cls(settings.category_image_slots, settings.default_image_slots)

    def __call__(self, category: Optional[str]) -> int:
        return self.limits.get(category or "", self.default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limits": {"default": self.default, **self.limits},
            "requirements": {**IMAGE_REQUIREMENTS, "min_slots": self.default},
        }


def build_image_sets(assessments: List[ImageAssessment], max_slots: int) -> List[ImageSet]:
    """
    Build up to three ranked image sets from assessed images.

    - Set A: the top max_slots images by quality, re-ordered by cover
      suitability so the best potential cover comes first.
    - Set B (2+ images): set A with its second image moved to the front,
      testing the cover photo alone.
    - Set C (5+ images): set A's odd positions followed by its even
      positions, mixing angles instead of a quality-monotonic gallery.
    """
    if max_slots < 1:
        raise ValidationError("max_slots must be at least 1")

    by_quality = sorted(assessments, key=lambda a: a.score, reverse=True)
    selected = sorted(by_quality[:max_slots], key=lambda a: a.cover_score, reverse=True)
    primary = [a.url for a in selected]

    sets = [ImageSet(
        images=primary,
        rationale="Best overall quality, optimized cover",
        predicted_engagement=PREDICTED_ENGAGEMENT_PRIMARY,
        assessments=selected,
    )]

    if len(selected) >= 2:
        cover_test = [primary[1], primary[0]] + primary[2:]
        sets.append(ImageSet(
            images=cover_test[:max_slots],
            rationale="Second-best photo as cover (cover test)",
            predicted_engagement=PREDICTED_ENGAGEMENT_COVER_TEST,
        ))

    if len(selected) >= 5:
        mixed = primary[1::2] + primary[0::2]
        sets.append(ImageSet(
            images=mixed[:max_slots],
            rationale="Alternating angles for variety",
            predicted_engagement=PREDICTED_ENGAGEMENT_MIXED,
        ))

    return sets


class ImageSetAllocator:
    """
    Scores a photo pool and builds slot-bounded image sets.

    A failing scorer is replaced by the deterministic fallback scorer so
    allocation stays available.
    """

    def __init__(
        self,
        scorer: ImageScorer,
        slot_limits: Optional[Callable[[Optional[str]], int]] = None,
        fallback: Optional[FallbackImageScorer] = None,
    ):
        self.scorer = scorer
        self.slot_limits = slot_limits or CategorySlotLimits.from_settings()
        self.fallback = fallback or FallbackImageScorer()

    async def assess(self, images: List[str], category: str) -> List[ImageAssessment]:
        """Assess images, falling back to synthetic scores on scorer failure."""
        if not images:
            return []

        try:
            assessments = await self.scorer.assess(images, category)
        except Exception as e:
            logger.warning(
                "Image scorer failed, using fallback scores",
                category=category,
                image_count=len(images),
                error=str(e),
                error_type=type(e).__name__,
            )
            return await self.fallback.assess(images, category)

        if len(assessments) != len(images):
            logger.warning(
                "Image scorer returned a partial assessment, using fallback scores",
                expected=len(images),
                received=len(assessments),
            )
            return await self.fallback.assess(images, category)

        return assessments

    async def allocate(
        self,
        images: List[str],
        category: str,
        max_slots: Optional[int] = None,
    ) -> List[ImageSet]:
        """
        Build ranked image sets for a variant.

        Args:
            images: Candidate image references in any order
            category: Listing category, used for scoring and slot limits
            max_slots: Hard cap on images per set; defaults to the category limit

        Returns:
            One to three ImageSets, each at most max_slots long
        """
        if not images:
            raise ValidationError("No images provided")

        slots = max_slots if max_slots is not None else self.slot_limits(category)
        assessments = await self.assess(images, category)
        sets = build_image_sets(assessments, slots)

        logger.info(
            "Image sets allocated",
            category=category,
            pool_size=len(images),
            max_slots=slots,
            sets=len(sets),
        )
        return sets
