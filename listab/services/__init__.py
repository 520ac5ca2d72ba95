"""
Listab Services

Business logic layer: experiment lifecycle, winner selection, rotation
scheduling and image set allocation.
"""

from listab.services.experiment_service import ExperimentService, get_experiment_service
from listab.services.image_allocator import CategorySlotLimits, ImageSet, ImageSetAllocator, build_image_sets
from listab.services.rotation_scheduler import PassReport, RotationScheduler
from listab.services.winner_selector import VariantScore, WinnerSelection, rank_variants, score_variant, select_winner

__all__ = [
    "ExperimentService",
    "get_experiment_service",
    "CategorySlotLimits",
    "ImageSet",
    "ImageSetAllocator",
    "build_image_sets",
    "PassReport",
    "RotationScheduler",
    "VariantScore",
    "WinnerSelection",
    "rank_variants",
    "score_variant",
    "select_winner",
]
