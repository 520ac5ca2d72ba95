"""
Experiment Models

Listing A/B experiments and their variants.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from listab.models.base import Base, TimestampMixin, UUIDMixin

ImageList = JSON().with_variant(JSONB(), "postgresql")


class ExperimentStatus(str, Enum):
    """Experiment lifecycle status."""
    DRAFT = "draft"
    TESTING = "testing"
    WINNER_FOUND = "winner_found"
    COMPLETED = "completed"


class Experiment(Base, UUIDMixin, TimestampMixin):
    """
    A/B experiment over competing versions of one marketplace listing.

    Attributes:
        id: Unique experiment ID
        owner_id: User who owns the experiment
        project_id: Optional project grouping
        name: Human-readable experiment name
        category: Taxonomy key used for image slot limits and publishing
        base_title: Title the variants default to
        base_description: Description the variants default to
        base_price: Price the variants default to
        base_images: Image references the variants default to
        duration_days: Total experiment lifetime
        rotation_interval_hours: How often the live variant changes
        status: Current lifecycle status
        current_variant_index: Index of the variant that is live now
        started_at: When testing started
        last_rotated_at: When the live variant last changed
        stopped_at: When the experiment was completed
        winner_variant_id: Variant picked by winner selection
    """

    __tablename__ = "ab_experiments"

    # Ownership
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)

    # Basic info
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="general")

    # Base content
    base_title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    base_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    base_images: Mapped[List[str]] = mapped_column(ImageList, nullable=False, default=list)

    # Schedule
    duration_days: Mapped[Optional[int]] = mapped_column(nullable=True, default=7)
    rotation_interval_hours: Mapped[int] = mapped_column(nullable=False, default=24)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ExperimentStatus.DRAFT.value,
    )
    current_variant_index: Mapped[Optional[int]] = mapped_column(nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    last_rotated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    stopped_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    # Results
    winner_variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # Relationships
    variants: Mapped[List["Variant"]] = relationship(
        "Variant",
        back_populates="experiment",
        cascade="all, delete-orphan",
        order_by="Variant.index",
    )

    __table_args__ = (
        Index("ix_ab_experiments_status", "status"),
        Index("ix_ab_experiments_started_at", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<Experiment(name={self.name}, status={self.status})>"

    def variant_at(self, index: Optional[int]) -> Optional["Variant"]:
        """Variant with the given rotation index."""
        for variant in self.variants:
            if variant.index == index:
                return variant
        return None

    @property
    def current_variant(self) -> Optional["Variant"]:
        """Variant that is live now, if any."""
        if self.current_variant_index is None:
            return None
        return self.variant_at(self.current_variant_index)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "owner_id": str(self.owner_id),
            "project_id": str(self.project_id) if self.project_id else None,
            "name": self.name,
            "category": self.category,
            "base_title": self.base_title,
            "base_description": self.base_description,
            "base_price": float(self.base_price),
            "base_images": list(self.base_images or []),
            "duration_days": self.duration_days,
            "rotation_interval_hours": self.rotation_interval_hours,
            "status": self.status,
            "current_variant_index": self.current_variant_index,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_rotated_at": self.last_rotated_at.isoformat() if self.last_rotated_at else None,
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else None,
            "winner_variant_id": str(self.winner_variant_id) if self.winner_variant_id else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "variants": [v.to_dict() for v in self.variants],
        }


class Variant(Base, UUIDMixin, TimestampMixin):
    """
    One concrete title/description/price/image combination under test.

    Attributes:
        id: Unique variant ID
        experiment_id: Parent experiment
        index: Stable zero-based position used for rotation
        name: Human-readable variant name
        title: Listing title
        description: Listing description
        price: Listing price
        images: Ordered image references, first is the cover image
        views: Accumulated listing views
        contacts: Accumulated buyer contacts
        favorites: Accumulated favorites
        external_listing_id: Marketplace listing id once published
        published_at: When this variant was last made live
    """

    __tablename__ = "ab_variants"

    experiment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ab_experiments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    index: Mapped[int] = mapped_column(nullable=False)

    # Content
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    images: Mapped[List[str]] = mapped_column(ImageList, nullable=False, default=list)

    # Counters
    views: Mapped[int] = mapped_column(nullable=False, default=0)
    contacts: Mapped[int] = mapped_column(nullable=False, default=0)
    favorites: Mapped[int] = mapped_column(nullable=False, default=0)

    # Publishing
    external_listing_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    # Relationships
    experiment: Mapped["Experiment"] = relationship("Experiment", back_populates="variants")

    __table_args__ = (
        UniqueConstraint("experiment_id", "index", name="uq_ab_variants_experiment_index"),
        CheckConstraint("views >= 0", name="ck_ab_variants_views_non_negative"),
        CheckConstraint("contacts >= 0", name="ck_ab_variants_contacts_non_negative"),
        CheckConstraint("favorites >= 0", name="ck_ab_variants_favorites_non_negative"),
        CheckConstraint("price >= 0", name="ck_ab_variants_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Variant(index={self.index}, name={self.name})>"

    def listing_content(self, category: str) -> dict:
        """Content handed to the publisher when this variant goes live."""
        return {
            "title": self.title,
            "description": self.description,
            "price": float(self.price),
            "images": list(self.images or []),
            "category": category,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "experiment_id": str(self.experiment_id),
            "index": self.index,
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "price": float(self.price),
            "images": list(self.images or []),
            "views": self.views,
            "contacts": self.contacts,
            "favorites": self.favorites,
            "external_listing_id": self.external_listing_id,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }
