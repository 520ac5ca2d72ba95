"""
Listab Schemas

Pydantic models for service inputs.
"""

from listab.schemas.experiment import (
    BaseContent,
    ExperimentCreate,
    HypothesisRequest,
    MetricsUpdate,
    VariantCreate,
)

__all__ = [
    "BaseContent",
    "ExperimentCreate",
    "HypothesisRequest",
    "MetricsUpdate",
    "VariantCreate",
]
