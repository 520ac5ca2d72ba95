"""
Listab Integrations

External collaborators: vision image scoring, listing publishing and
public-folder image listing.
"""

from listab.integrations.image_scorer import (
    FallbackImageScorer,
    ImageAssessment,
    ImageQuality,
    ImageScorer,
    VisionImageScorer,
    get_image_scorer,
)
from listab.integrations.image_source import PublicFolderClient
from listab.integrations.publisher import AutoloadPublisher, ListingPublisher, PublishResult, get_publisher

__all__ = [
    "FallbackImageScorer",
    "ImageAssessment",
    "ImageQuality",
    "ImageScorer",
    "VisionImageScorer",
    "get_image_scorer",
    "PublicFolderClient",
    "AutoloadPublisher",
    "ListingPublisher",
    "PublishResult",
    "get_publisher",
]
