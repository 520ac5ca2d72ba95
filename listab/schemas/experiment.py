"""
Experiment Schemas

Pydantic models for experiment operations.
"""

import uuid
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class BaseContent(BaseModel):
    """Listing content that variants inherit unless they override it."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    price: Decimal = Field(default=Decimal("0"), ge=0)
    images: List[str] = Field(default_factory=list)


class VariantCreate(BaseModel):
    """Schema for a variant created together with its experiment."""

    index: Optional[int] = Field(None, ge=0)
    name: Optional[str] = Field(None, max_length=200)
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    images: Optional[List[str]] = None


class ExperimentCreate(BaseModel):
    """Schema for creating an experiment."""

    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(default="general", max_length=100)
    base_content: BaseContent
    duration_days: Optional[int] = Field(None, ge=1)
    rotation_interval_hours: Optional[int] = Field(None, ge=1)
    project_id: Optional[uuid.UUID] = None
    variants: List[VariantCreate] = Field(default_factory=list)


class MetricsUpdate(BaseModel):
    """
    Counter update for one variant.

    Counters are validated by the service so that a rejected update
    surfaces as a ValidationError from the lifecycle layer.
    """

    variant_id: Optional[uuid.UUID] = None
    variant_index: Optional[int] = None
    views: Optional[int] = None
    contacts: Optional[int] = None
    favorites: Optional[int] = None
    external_listing_id: Optional[str] = Field(None, max_length=100)
    mode: Literal["set", "increment"] = "set"


class HypothesisRequest(BaseModel):
    """Base listing content to derive variant hypotheses from."""

    base_title: str = Field(..., min_length=1)
    base_description: str = ""
    base_price: Decimal = Field(default=Decimal("0"), ge=0)
