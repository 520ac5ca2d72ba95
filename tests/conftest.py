"""
Test Configuration

Pytest fixtures and configuration for Listab tests.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from listab.config import Settings
from listab.integrations.image_scorer import FallbackImageScorer
from listab.integrations.publisher import ListingPublisher, PublishResult
from listab.models import Base
from listab.schemas.experiment import BaseContent, ExperimentCreate, VariantCreate
from listab.services.experiment_service import ExperimentService
from listab.services.image_allocator import CategorySlotLimits, ImageSetAllocator


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create test database engine on a throwaway SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'listab.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    """Settings with no external collaborators configured."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        image_scorer_enabled=False,
        openai_api_key="",
        publisher_enabled=False,
    )


@pytest.fixture
def publisher():
    """Publisher double that accepts every publish."""
    mock = AsyncMock(spec=ListingPublisher)
    mock.make_live.return_value = PublishResult(
        listing_ref="listing-1",
        published_at=datetime(2026, 1, 1, 12, 0),
    )
    return mock


@pytest.fixture
def allocator(settings):
    """Allocator using the deterministic fallback scorer."""
    return ImageSetAllocator(
        scorer=FallbackImageScorer(),
        slot_limits=CategorySlotLimits.from_settings(settings),
    )


@pytest.fixture
def service(db_session, publisher, allocator, settings):
    """Experiment service over the test database."""
    return ExperimentService(db_session, publisher=publisher, allocator=allocator, settings=settings)


@pytest.fixture
def sample_user_id():
    """Sample user ID for testing."""
    return uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def make_experiment_data():
    """Build experiment input with n variants."""

    def _make(n: int = 3, **overrides) -> ExperimentCreate:
        data = {
            "name": "Bike listing test",
            "category": "transport",
            "base_content": BaseContent(
                title="Road bike",
                description="Carbon frame, size 56",
                price=Decimal("1000"),
                images=["https://img.test/a.jpg", "https://img.test/b.jpg"],
            ),
            "duration_days": 7,
            "rotation_interval_hours": 24,
            "variants": [
                VariantCreate(name=f"Variant {i}", title=f"Road bike #{i}")
                for i in range(n)
            ],
        }
        data.update(overrides)
        return ExperimentCreate(**data)

    return _make
