"""
Listab Data Models

SQLAlchemy ORM models for the Listab database.
"""

from listab.models.base import Base
from listab.models.experiment import Experiment, ExperimentStatus, Variant

__all__ = [
    "Base",
    "Experiment",
    "ExperimentStatus",
    "Variant",
]
