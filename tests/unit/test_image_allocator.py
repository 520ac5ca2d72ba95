"""
Unit Tests for Image Set Allocation

Tests for set construction, slot limits and scorer fallback.
"""

from unittest.mock import AsyncMock

import pytest

from listab.errors import CollaboratorError, ValidationError
from listab.integrations.image_scorer import FallbackImageScorer, ImageAssessment, ImageQuality, ImageScorer
from listab.services.image_allocator import CategorySlotLimits, ImageSetAllocator, build_image_sets


def pool(n):
    return [f"https://img.test/{i}.jpg" for i in range(n)]


def assessment(url, score, cover_score):
    return ImageAssessment(url=url, score=score, cover_score=cover_score, quality=ImageQuality.HIGH)


@pytest.fixture
def fallback_allocator():
    return ImageSetAllocator(
        scorer=FallbackImageScorer(),
        slot_limits=CategorySlotLimits({"transport": 40}, default=10),
    )


class TestBuildImageSets:
    """Tests for build_image_sets."""

    def test_primary_set_takes_best_quality_and_best_cover_first(self):
        assessments = [
            assessment("a", score=50, cover_score=10),
            assessment("b", score=90, cover_score=40),
            assessment("c", score=80, cover_score=95),
            assessment("d", score=20, cover_score=99),
        ]

        sets = build_image_sets(assessments, max_slots=3)

        # d is dropped on quality even though it is the best cover
        assert sets[0].images == ["c", "b", "a"]
        assert sets[0].cover_image == "c"

    def test_cover_test_swaps_first_two(self):
        assessments = [assessment(str(i), score=90 - i, cover_score=90 - i) for i in range(3)]

        sets = build_image_sets(assessments, max_slots=10)

        assert sets[1].images == ["1", "0", "2"]

    def test_mixed_set_alternates_positions(self):
        assessments = [assessment(str(i), score=90 - i, cover_score=90 - i) for i in range(6)]

        sets = build_image_sets(assessments, max_slots=10)

        assert sets[2].images == ["1", "3", "5", "0", "2", "4"]

    def test_invalid_slot_count(self):
        with pytest.raises(ValidationError):
            build_image_sets([assessment("a", 50, 50)], max_slots=0)


class TestImageSetAllocator:
    """Tests for ImageSetAllocator."""

    @pytest.mark.asyncio
    async def test_slot_cap_and_best_cover_first(self, fallback_allocator):
        images = pool(15)

        sets = await fallback_allocator.allocate(images, "general", max_slots=10)

        assert all(len(s.images) <= 10 for s in sets)
        selected = sets[0].assessments
        assert len(selected) == 10
        assert selected[0].url == sets[0].images[0]
        assert selected[0].cover_score == max(a.cover_score for a in selected)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,expected_sets", [(1, 1), (2, 2), (3, 2), (4, 2), (5, 3), (12, 3)])
    async def test_set_count_follows_pool_size(self, fallback_allocator, count, expected_sets):
        sets = await fallback_allocator.allocate(pool(count), "general", max_slots=10)

        assert len(sets) == expected_sets

    @pytest.mark.asyncio
    async def test_category_limit_is_default_cap(self, fallback_allocator):
        sets = await fallback_allocator.allocate(pool(50), "transport")

        assert len(sets[0].images) == 40

        sets = await fallback_allocator.allocate(pool(50), "unknown-category")

        assert len(sets[0].images) == 10

    @pytest.mark.asyncio
    async def test_empty_pool_is_rejected(self, fallback_allocator):
        with pytest.raises(ValidationError):
            await fallback_allocator.allocate([], "general")

    @pytest.mark.asyncio
    async def test_failing_scorer_falls_back(self):
        scorer = AsyncMock(spec=ImageScorer)
        scorer.assess.side_effect = CollaboratorError("image_scorer", "timeout")
        allocator = ImageSetAllocator(scorer=scorer, slot_limits=CategorySlotLimits())

        sets = await allocator.allocate(pool(3), "general")

        scorer.assess.assert_awaited_once()
        assert len(sets) == 2
        # Fallback prefers the first photo as cover
        assert sets[0].images[0] == pool(3)[0]
        assert sets[0].assessments[0].cover_score == 90

    @pytest.mark.asyncio
    async def test_unexpected_scorer_error_falls_back(self):
        scorer = AsyncMock(spec=ImageScorer)
        scorer.assess.side_effect = RuntimeError("vision backend crashed")
        allocator = ImageSetAllocator(scorer=scorer, slot_limits=CategorySlotLimits())

        sets = await allocator.allocate(pool(3), "general")

        assert len(sets) == 2
        assert sets[0].images[0] == pool(3)[0]

    @pytest.mark.asyncio
    async def test_partial_assessment_falls_back(self):
        scorer = AsyncMock(spec=ImageScorer)
        scorer.assess.return_value = [assessment(pool(3)[2], 99, 99)]
        allocator = ImageSetAllocator(scorer=scorer, slot_limits=CategorySlotLimits())

        assessments = await allocator.assess(pool(3), "general")

        assert [a.url for a in assessments] == pool(3)
        assert assessments[0].cover_score == 90


class TestCategorySlotLimits:
    """Tests for CategorySlotLimits."""

    def test_lookup_and_default(self):
        limits = CategorySlotLimits({"realty": 40}, default=10)

        assert limits("realty") == 40
        assert limits("general") == 10
        assert limits(None) == 10

    def test_to_dict_lists_requirements(self):
        data = CategorySlotLimits({"realty": 40}, default=10).to_dict()

        assert data["limits"] == {"default": 10, "realty": 40}
        assert data["requirements"]["min_slots"] == 10
