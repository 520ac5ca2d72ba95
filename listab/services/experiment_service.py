"""
Experiment Service

Lifecycle of listing A/B experiments.
Features:
- Experiment creation and management
- Start / stop / rotation state machine
- Variant metrics (set or increment)
- Winner detection and auto-declaration
- Publishing variants to the marketplace
- Image set optimization for variants

Every state transition is a single conditional UPDATE keyed by experiment
id, so concurrent writers (operators and the rotation scheduler) can race
without leaving an out-of-range live index or an undefined status. Publish
calls happen after the transition has been committed and never roll it
back.
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import structlog

from listab.config import Settings, get_settings
from listab.errors import (
    CollaboratorError,
    ExperimentNotFoundError,
    InsufficientDataError,
    InvalidStateError,
    ValidationError,
)
from listab.integrations.image_scorer import ImageAssessment, get_image_scorer
from listab.integrations.image_source import PublicFolderClient
from listab.integrations.publisher import ListingPublisher, PublishResult
from listab.models import Experiment, ExperimentStatus, Variant
from listab.schemas.experiment import ExperimentCreate, MetricsUpdate
from listab.services.image_allocator import CategorySlotLimits, ImageSet, ImageSetAllocator
from listab.services.winner_selector import WinnerSelection, rank_variants, score_variant, select_winner

logger = structlog.get_logger()

COUNTERS = ("views", "contacts", "favorites")

STARTABLE_STATES = (ExperimentStatus.DRAFT.value, ExperimentStatus.WINNER_FOUND.value)

_UNSET = object()


def hours_since_rotation(experiment: Experiment, now: datetime) -> float:
    """Hours since the live variant changed; never-rotated experiments are always due."""
    if experiment.last_rotated_at is None:
        return experiment.rotation_interval_hours + 1
    return (now - experiment.last_rotated_at).total_seconds() / 3600


def is_rotation_due(experiment: Experiment, now: datetime) -> bool:
    return hours_since_rotation(experiment, now) >= experiment.rotation_interval_hours


def is_expired(experiment: Experiment, now: datetime) -> bool:
    """Whether a started experiment has run for its full duration."""
    if experiment.started_at is None or experiment.duration_days is None:
        return False
    return experiment.started_at + timedelta(days=experiment.duration_days) <= now


class ExperimentService:
    """
    Service for managing listing experiments.

    Collaborators are optional: without a publisher, variants are never
    pushed to the marketplace; without an allocator, one is built from the
    configured image scorer and slot limits on first use.
    """

    def __init__(
        self,
        db: AsyncSession,
        publisher: Optional[ListingPublisher] = None,
        allocator: Optional[ImageSetAllocator] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.publisher = publisher
        self.settings = settings or get_settings()
        self._allocator = allocator

    @property
    def allocator(self) -> ImageSetAllocator:
        if self._allocator is None:
            self._allocator = ImageSetAllocator(
                scorer=get_image_scorer(self.settings),
                slot_limits=CategorySlotLimits.from_settings(self.settings),
            )
        return self._allocator

    # =========================================================================
    # Experiment Management
    # =========================================================================

    async def create_experiment(
        self,
        data: ExperimentCreate,
        owner_id: uuid.UUID,
    ) -> Experiment:
        """Create an experiment in draft, with optional initial variants."""
        indexes = [
            v.index if v.index is not None else i
            for i, v in enumerate(data.variants)
        ]
        if len(set(indexes)) != len(indexes):
            raise ValidationError("Variant indexes must be unique")
        if sorted(indexes) != list(range(len(indexes))):
            raise ValidationError("Variant indexes must run from 0 to the variant count minus one")

        base = data.base_content
        experiment = Experiment(
            owner_id=owner_id,
            project_id=data.project_id,
            name=data.name,
            category=data.category,
            base_title=base.title,
            base_description=base.description,
            base_price=base.price,
            base_images=list(base.images),
            duration_days=data.duration_days or self.settings.default_duration_days,
            rotation_interval_hours=(
                data.rotation_interval_hours or self.settings.default_rotation_interval_hours
            ),
            status=ExperimentStatus.DRAFT.value,
        )
        self.db.add(experiment)
        await self.db.flush()

        for index, v in zip(indexes, data.variants):
            self.db.add(Variant(
                experiment_id=experiment.id,
                index=index,
                name=v.name or f"Variant {index + 1}",
                title=v.title if v.title is not None else base.title,
                description=v.description if v.description is not None else base.description,
                price=v.price if v.price is not None else base.price,
                images=list(v.images if v.images is not None else base.images),
            ))

        await self.db.commit()

        logger.info(
            "Experiment created",
            experiment_id=str(experiment.id),
            name=data.name,
            variants=len(data.variants),
        )

        return await self.get_experiment(experiment.id)

    async def _load(self, experiment_id: uuid.UUID) -> Optional[Experiment]:
        result = await self.db.execute(
            select(Experiment)
            .where(Experiment.id == experiment_id)
            .options(selectinload(Experiment.variants))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_experiment(self, experiment_id: uuid.UUID) -> Experiment:
        """Get an experiment with its variants ordered by index."""
        experiment = await self._load(experiment_id)
        if experiment is None:
            raise ExperimentNotFoundError(f"Experiment {experiment_id} not found")
        return experiment

    async def list_experiments(
        self,
        owner_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
        status: Optional[ExperimentStatus] = None,
    ) -> List[Experiment]:
        """List experiments, newest first."""
        query = (
            select(Experiment)
            .options(selectinload(Experiment.variants))
            .order_by(Experiment.created_at.desc())
        )
        if owner_id:
            query = query.where(Experiment.owner_id == owner_id)
        if project_id:
            query = query.where(Experiment.project_id == project_id)
        if status:
            try:
                status = ExperimentStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown status {status}")
            query = query.where(Experiment.status == status.value)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def delete_experiment(self, experiment_id: uuid.UUID) -> None:
        """Delete an experiment and all of its variants."""
        await self.get_experiment(experiment_id)

        await self.db.execute(delete(Variant).where(Variant.experiment_id == experiment_id))
        await self.db.execute(delete(Experiment).where(Experiment.id == experiment_id))
        await self.db.commit()

        logger.info("Experiment deleted", experiment_id=str(experiment_id))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _update_where(
        self,
        experiment_id: uuid.UUID,
        conditions: Sequence[Any],
        values: Dict[str, Any],
    ) -> bool:
        """Conditional single-row update; True when the row matched."""
        stmt = (
            update(Experiment)
            .where(Experiment.id == experiment_id, *conditions)
            .values(**values)
            .returning(Experiment.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def _advance_rotation(
        self,
        experiment_id: uuid.UUID,
        now: datetime,
        expected_last_rotated_at: Any = _UNSET,
    ) -> Optional[int]:
        """
        Move the live index to the next variant, wrapping around.

        The wrapped index is computed in SQL from the live variant count.
        When expected_last_rotated_at is given the update only applies if
        nobody rotated in between.
        """
        variant_count = (
            select(func.count(Variant.id))
            .where(Variant.experiment_id == Experiment.id)
            .scalar_subquery()
        )
        conditions = [Experiment.status == ExperimentStatus.TESTING.value]
        if expected_last_rotated_at is not _UNSET:
            if expected_last_rotated_at is None:
                conditions.append(Experiment.last_rotated_at.is_(None))
            else:
                conditions.append(Experiment.last_rotated_at == expected_last_rotated_at)

        stmt = (
            update(Experiment)
            .where(Experiment.id == experiment_id, *conditions)
            .values(
                current_variant_index=(func.coalesce(Experiment.current_variant_index, 0) + 1) % variant_count,
                last_rotated_at=now,
            )
            .returning(Experiment.current_variant_index)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def start_experiment(
        self,
        experiment_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> Experiment:
        """Start testing; variant 0 goes live."""
        now = now or datetime.utcnow()
        experiment = await self.get_experiment(experiment_id)

        if len(experiment.variants) < 2:
            raise ValidationError("Need at least 2 variants to start")

        started = await self._update_where(
            experiment_id,
            [Experiment.status.in_(STARTABLE_STATES)],
            {
                "status": ExperimentStatus.TESTING.value,
                "started_at": now,
                "current_variant_index": 0,
                "last_rotated_at": None,
                "stopped_at": None,
                "winner_variant_id": None,
            },
        )
        if not started:
            raise InvalidStateError(f"Cannot start experiment in {experiment.status} status")
        await self.db.commit()

        logger.info(
            "Experiment started",
            experiment_id=str(experiment_id),
            name=experiment.name,
        )

        experiment = await self.get_experiment(experiment_id)
        await self._publish_best_effort(experiment, 0, now)
        return await self.get_experiment(experiment_id)

    async def stop_experiment(
        self,
        experiment_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> Experiment:
        """Complete an experiment. Stopping a completed experiment is a no-op."""
        now = now or datetime.utcnow()
        await self.get_experiment(experiment_id)

        stopped = await self._update_where(
            experiment_id,
            [Experiment.status != ExperimentStatus.COMPLETED.value],
            {"status": ExperimentStatus.COMPLETED.value, "stopped_at": now},
        )
        await self.db.commit()

        if stopped:
            logger.info("Experiment stopped", experiment_id=str(experiment_id))

        return await self.get_experiment(experiment_id)

    async def rotate_next(
        self,
        experiment_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> Experiment:
        """Make the next variant live, wrapping around after the last one."""
        now = now or datetime.utcnow()
        await self.get_experiment(experiment_id)

        next_index = await self._advance_rotation(experiment_id, now)
        if next_index is None:
            raise InvalidStateError("Experiment is not in testing state")
        await self.db.commit()

        logger.info(
            "Rotated experiment",
            experiment_id=str(experiment_id),
            variant_index=next_index,
        )

        experiment = await self.get_experiment(experiment_id)
        await self._publish_best_effort(experiment, next_index, now)
        return await self.get_experiment(experiment_id)

    async def rotate_if_due(self, experiment_id: uuid.UUID, now: datetime) -> bool:
        """Rotate when the rotation interval has elapsed. Returns True if rotated."""
        experiment = await self._load(experiment_id)
        if experiment is None or experiment.status != ExperimentStatus.TESTING.value:
            return False
        if not is_rotation_due(experiment, now):
            return False

        next_index = await self._advance_rotation(
            experiment_id,
            now,
            expected_last_rotated_at=experiment.last_rotated_at,
        )
        if next_index is None:
            return False
        await self.db.commit()

        logger.info(
            "Rotated experiment",
            experiment_id=str(experiment_id),
            variant_index=next_index,
            scheduled=True,
        )

        experiment = await self.get_experiment(experiment_id)
        await self._publish_best_effort(experiment, next_index, now)
        return True

    async def expire_if_due(self, experiment_id: uuid.UUID, now: datetime) -> bool:
        """
        Complete an experiment whose duration has elapsed.

        Picks a best-effort winner with no sampling minimums, records it
        together with the completion, then publishes the winner.
        Returns True if the experiment was completed by this call.
        """
        experiment = await self._load(experiment_id)
        if experiment is None or experiment.status != ExperimentStatus.TESTING.value:
            return False
        if not is_expired(experiment, now):
            return False

        selection = None
        if experiment.variants:
            selection = select_winner(
                experiment.variants,
                min_total_views=0,
                min_variant_views=0,
                allow_low_sample=True,
            )

        values: Dict[str, Any] = {
            "status": ExperimentStatus.COMPLETED.value,
            "stopped_at": now,
        }
        if selection is not None:
            values["winner_variant_id"] = selection.winner.id

        completed = await self._update_where(
            experiment_id,
            [Experiment.status == ExperimentStatus.TESTING.value],
            values,
        )
        if not completed:
            return False
        await self.db.commit()

        logger.info(
            "Experiment expired",
            experiment_id=str(experiment_id),
            winner_index=selection.winner.index if selection else None,
            total_views=selection.total_views if selection else 0,
        )

        if selection is not None:
            experiment = await self.get_experiment(experiment_id)
            await self._publish_best_effort(experiment, selection.winner.index, now)
        return True

    # =========================================================================
    # Winner Selection
    # =========================================================================

    async def determine_winner(
        self,
        experiment_id: uuid.UUID,
        min_total_views: Optional[int] = None,
        min_variant_views: Optional[int] = None,
        allow_low_sample: bool = False,
        persist: bool = True,
    ) -> WinnerSelection:
        """
        Select the winning variant.

        With persist, the winner is recorded and the experiment moves to
        winner_found (a completed experiment stays completed).
        """
        experiment = await self.get_experiment(experiment_id)
        selection = select_winner(
            experiment.variants,
            min_total_views=(
                self.settings.winner_min_total_views if min_total_views is None else min_total_views
            ),
            min_variant_views=(
                self.settings.winner_min_variant_views if min_variant_views is None else min_variant_views
            ),
            allow_low_sample=allow_low_sample,
        )

        if persist:
            await self._update_where(
                experiment_id,
                [],
                {
                    "winner_variant_id": selection.winner.id,
                    "status": case(
                        (
                            Experiment.status == ExperimentStatus.COMPLETED.value,
                            ExperimentStatus.COMPLETED.value,
                        ),
                        else_=ExperimentStatus.WINNER_FOUND.value,
                    ),
                },
            )
            await self.db.commit()

            logger.info(
                "Winner declared",
                experiment_id=str(experiment_id),
                variant_index=selection.winner.index,
                score=selection.score,
                total_views=selection.total_views,
            )

        return selection

    async def preview_winner(
        self,
        experiment_id: uuid.UUID,
        min_total_views: Optional[int] = None,
        min_variant_views: Optional[int] = None,
        allow_low_sample: bool = False,
    ) -> WinnerSelection:
        """Winner selection without side effects."""
        return await self.determine_winner(
            experiment_id,
            min_total_views=min_total_views,
            min_variant_views=min_variant_views,
            allow_low_sample=allow_low_sample,
            persist=False,
        )

    # =========================================================================
    # Metrics
    # =========================================================================

    def _validate_metrics(self, experiment: Experiment, data: MetricsUpdate) -> Variant:
        """Check counters are non-negative and resolve the target variant."""
        for name in COUNTERS:
            value = getattr(data, name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} must be non-negative, got {value}")

        if data.variant_id is None and data.variant_index is None:
            raise ValidationError("variant_id or variant_index is required")

        for variant in experiment.variants:
            if data.variant_id is not None and variant.id == data.variant_id:
                return variant
            if data.variant_id is None and variant.index == data.variant_index:
                return variant

        reference = data.variant_id if data.variant_id is not None else data.variant_index
        raise ValidationError(f"Unknown variant {reference} in experiment {experiment.id}")

    async def _apply_metrics(self, variant: Variant, data: MetricsUpdate) -> None:
        values: Dict[str, Any] = {}
        for name in COUNTERS:
            value = getattr(data, name)
            if value is None:
                continue
            if data.mode == "increment":
                values[name] = getattr(Variant, name) + value
            else:
                values[name] = value
        if data.external_listing_id:
            values["external_listing_id"] = data.external_listing_id
        if not values:
            return

        await self.db.execute(
            update(Variant)
            .where(Variant.id == variant.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def update_variant_metrics(
        self,
        experiment_id: uuid.UUID,
        data: MetricsUpdate,
        auto_determine_winner: bool = False,
    ) -> Dict[str, Any]:
        """
        Set or increment the counters of one variant.

        Args:
            experiment_id: Experiment owning the variant
            data: Variant reference, counter values and mode
            auto_determine_winner: Try to declare a winner after the update

        Returns:
            Updated variant and, when requested, the winner or why none yet
        """
        experiment = await self.get_experiment(experiment_id)
        variant = self._validate_metrics(experiment, data)
        variant_id = variant.id

        await self._apply_metrics(variant, data)
        await self.db.commit()

        experiment = await self.get_experiment(experiment_id)
        updated = next(v for v in experiment.variants if v.id == variant_id)
        result: Dict[str, Any] = {"variant": updated.to_dict(), "winner": None}

        if auto_determine_winner:
            try:
                selection = await self.determine_winner(experiment_id)
                result["winner"] = selection.to_dict()
            except InsufficientDataError as e:
                result["winner_pending"] = {
                    "reason": str(e),
                    "collected": e.collected,
                    "required": e.required,
                }

        return result

    async def bulk_update_variant_metrics(
        self,
        experiment_id: uuid.UUID,
        updates: List[MetricsUpdate],
    ) -> Experiment:
        """Apply several metric updates; nothing is written if any is invalid."""
        experiment = await self.get_experiment(experiment_id)
        targets = [(self._validate_metrics(experiment, data), data) for data in updates]

        for variant, data in targets:
            await self._apply_metrics(variant, data)
        await self.db.commit()

        logger.info(
            "Variant metrics updated",
            experiment_id=str(experiment_id),
            updates=len(targets),
        )
        return await self.get_experiment(experiment_id)

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_experiment_stats(
        self,
        experiment_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Snapshot of per-variant performance and experiment totals."""
        now = now or datetime.utcnow()
        experiment = await self.get_experiment(experiment_id)

        variants = []
        for v in experiment.variants:
            s = score_variant(v)
            variants.append({
                **v.to_dict(),
                "ctr": round(s.ctr * 100, 2),
                "fav_rate": round(s.fav_rate * 100, 2),
                "confidence": s.confidence,
                "score": s.score,
                "is_live": v.index == experiment.current_variant_index,
                "is_winner": v.id == experiment.winner_variant_id,
            })

        hours_running = 0.0
        if experiment.started_at:
            end_time = experiment.stopped_at or now
            hours_running = (end_time - experiment.started_at).total_seconds() / 3600

        return {
            "experiment_id": str(experiment.id),
            "status": experiment.status,
            "variants": variants,
            "summary": {
                "total_views": sum(v.views for v in experiment.variants),
                "total_contacts": sum(v.contacts for v in experiment.variants),
                "total_favorites": sum(v.favorites for v in experiment.variants),
                "variants_count": len(experiment.variants),
                "current_variant_index": experiment.current_variant_index,
                "hours_running": hours_running,
            },
        }

    async def get_best_image_combinations(self, experiment_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Variants ranked by weighted score with their image sets."""
        experiment = await self.get_experiment(experiment_id)
        by_id = {v.id: v for v in experiment.variants}

        combinations = []
        for rank, s in enumerate(rank_variants(experiment.variants), start=1):
            variant = by_id[s.variant_id]
            images = list(variant.images or [])
            combinations.append({
                "rank": rank,
                "variant_id": str(variant.id),
                "index": variant.index,
                "name": variant.name,
                "cover_image": images[0] if images else None,
                "images": images,
                "image_count": len(images),
                "views": s.views,
                "ctr": round(s.ctr * 100, 2),
                "score": s.score,
            })
        return combinations

    # =========================================================================
    # Publishing
    # =========================================================================

    async def _record_publish(self, variant_id: uuid.UUID, result: PublishResult) -> None:
        if not result.listing_ref:
            return
        await self.db.execute(
            update(Variant)
            .where(Variant.id == variant_id)
            .values(external_listing_id=result.listing_ref, published_at=result.published_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def _publish_best_effort(
        self,
        experiment: Experiment,
        variant_index: int,
        now: datetime,
    ) -> Optional[PublishResult]:
        """Publish a variant; failures are logged and never raised."""
        if self.publisher is None:
            return None

        variant = experiment.variant_at(variant_index)
        if variant is None:
            logger.warning(
                "Publish skipped, variant missing",
                experiment_id=str(experiment.id),
                variant_index=variant_index,
            )
            return None

        # Rollback expires loaded objects; log with plain values only.
        experiment_id = experiment.id
        variant_id = variant.id

        try:
            result = await self.publisher.make_live(
                experiment_id,
                variant.index,
                variant.listing_content(experiment.category),
            )
        except Exception as e:
            logger.warning(
                "Publish failed",
                experiment_id=str(experiment_id),
                variant_index=variant_index,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        try:
            await self._record_publish(variant_id, result)
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "Publish succeeded but recording it failed",
                experiment_id=str(experiment_id),
                variant_index=variant_index,
                error=str(e),
                error_type=type(e).__name__,
            )
        return result

    async def publish_variant(
        self,
        experiment_id: uuid.UUID,
        variant_index: int,
    ) -> PublishResult:
        """Publish a chosen variant; publisher failures are raised."""
        if self.publisher is None:
            raise CollaboratorError("publisher", "no publisher configured")

        experiment = await self.get_experiment(experiment_id)
        variant = experiment.variant_at(variant_index)
        if variant is None:
            raise ValidationError(f"Unknown variant index {variant_index}")

        result = await self.publisher.make_live(
            experiment.id,
            variant.index,
            variant.listing_content(experiment.category),
        )
        await self._record_publish(variant.id, result)

        logger.info(
            "Variant published on request",
            experiment_id=str(experiment_id),
            variant_index=variant_index,
            listing_ref=result.listing_ref,
        )
        return result

    # =========================================================================
    # Images
    # =========================================================================

    async def analyze_images(self, images: List[str], category: str = "general") -> List[ImageAssessment]:
        """Assess image quality with the configured scorer."""
        if not images:
            raise ValidationError("No images provided")
        return await self.allocator.assess(images, category)

    async def apply_image_sets(
        self,
        experiment_id: uuid.UUID,
        image_sets: Sequence[Union[ImageSet, List[str]]],
    ) -> Experiment:
        """Replace the image list of variant k with image set k."""
        experiment = await self.get_experiment(experiment_id)
        if experiment.status == ExperimentStatus.COMPLETED.value:
            raise InvalidStateError("Cannot change images of a completed experiment")

        for variant, image_set in zip(experiment.variants, image_sets):
            images = image_set.images if isinstance(image_set, ImageSet) else list(image_set)
            await self.db.execute(
                update(Variant)
                .where(Variant.id == variant.id)
                .values(images=images)
                .execution_options(synchronize_session=False)
            )
        await self.db.commit()

        logger.info(
            "Variant images replaced",
            experiment_id=str(experiment_id),
            variants=min(len(experiment.variants), len(image_sets)),
        )
        return await self.get_experiment(experiment_id)

    async def optimize_images(
        self,
        experiment_id: uuid.UUID,
        images: Optional[List[str]] = None,
        apply: bool = False,
        max_slots: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Build ranked image sets from a photo pool (default: the base images)."""
        experiment = await self.get_experiment(experiment_id)
        pool = list(images or experiment.base_images or [])
        if not pool:
            raise ValidationError("No images provided")

        slots = max_slots if max_slots is not None else self.allocator.slot_limits(experiment.category)
        image_sets = await self.allocator.allocate(pool, experiment.category, slots)

        if apply:
            await self.apply_image_sets(experiment_id, image_sets)

        return {
            "original_images": pool,
            "max_slots": slots,
            "image_sets": [s.to_dict() for s in image_sets],
            "assessments": [a.to_dict() for a in image_sets[0].assessments],
            "applied": apply,
        }

    async def import_images_from_folder(
        self,
        experiment_id: uuid.UUID,
        public_url: str,
        source: PublicFolderClient,
        max_slots: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Pull photos from a public folder and apply ranked sets to the variants."""
        urls = await source.list_images(public_url)
        if not urls:
            raise ValidationError("No images found in the public folder")

        result = await self.optimize_images(experiment_id, images=urls, apply=True, max_slots=max_slots)
        return {
            "total_found": len(urls),
            "slots_used": min(len(urls), result["max_slots"]),
            **result,
        }


# Factory function
def get_experiment_service(
    db: AsyncSession,
    publisher: Optional[ListingPublisher] = None,
) -> ExperimentService:
    """Create an ExperimentService instance."""
    return ExperimentService(db, publisher=publisher)
