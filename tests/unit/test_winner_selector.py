"""
Unit Tests for Winner Selection

Tests for scoring, ranking and the sampling gates.
"""

import uuid
from types import SimpleNamespace

import pytest

from listab.errors import InsufficientDataError, ValidationError
from listab.services.winner_selector import rank_variants, score_variant, select_winner


def make_variant(index, views=0, contacts=0, favorites=0):
    return SimpleNamespace(
        id=uuid.uuid4(),
        index=index,
        views=views,
        contacts=contacts,
        favorites=favorites,
    )


class TestScoreVariant:
    """Tests for score_variant."""

    def test_zero_views_scores_zero(self):
        score = score_variant(make_variant(0))

        assert score.ctr == 0.0
        assert score.fav_rate == 0.0
        assert score.confidence == 0.0
        assert score.score == 0.0

    def test_full_confidence_at_100_views(self):
        score = score_variant(make_variant(0, views=100, contacts=10, favorites=20))

        assert score.ctr == pytest.approx(0.1)
        assert score.fav_rate == pytest.approx(0.2)
        assert score.confidence == 1.0
        assert score.score == pytest.approx(0.7 * 0.1 + 0.3 * 0.2)

    def test_confidence_is_capped(self):
        score = score_variant(make_variant(0, views=5000, contacts=50))

        assert score.confidence == 1.0

    def test_low_traffic_is_damped(self):
        score = score_variant(make_variant(0, views=50, contacts=5))

        # ctr 0.1 weighted by 0.7, then multiplied by 0.4 + 0.6 * 0.5
        assert score.score == pytest.approx(0.07 * 0.7)


class TestSelectWinner:
    """Tests for select_winner."""

    def test_higher_ctr_wins_with_equal_traffic(self):
        variants = [
            make_variant(0, views=100, contacts=10),
            make_variant(1, views=100, contacts=5),
        ]

        first = select_winner(variants)
        second = select_winner(list(reversed(variants)))

        assert first.winner.index == 0
        assert second.winner.index == 0
        assert first.ctr == pytest.approx(0.10)
        assert first.total_views == 200
        assert first.evaluated_count == 2

    def test_lucky_ratio_does_not_outrank_steady_variant(self):
        lucky = make_variant(0, views=5, contacts=5)
        steady = make_variant(1, views=200, contacts=40)

        lucky_score = score_variant(lucky)
        # 5 views leave the ratio at 43% of its unweighted value
        assert lucky_score.score == pytest.approx(0.7 * 1.0 * 0.43)
        assert lucky_score.score < 0.5 * 0.7 * lucky_score.ctr
        assert score_variant(steady).score == pytest.approx(0.7 * 0.2)

        selection = select_winner([lucky, steady])

        assert selection.winner is steady
        assert selection.evaluated_count == 1
        assert [s.index for s in selection.scores] == [1]

    def test_insufficient_total_views(self):
        variants = [make_variant(0, views=6, contacts=1), make_variant(1, views=4, contacts=2)]

        with pytest.raises(InsufficientDataError) as exc_info:
            select_winner(variants)

        assert exc_info.value.collected == 10
        assert exc_info.value.required == 50

    def test_allow_low_sample_returns_winner(self):
        variants = [make_variant(0, views=6, contacts=1), make_variant(1, views=4, contacts=2)]

        selection = select_winner(variants, allow_low_sample=True)

        assert selection.winner.index == 1
        assert selection.evaluated_count == 2

    def test_no_variant_reaches_minimum(self):
        variants = [make_variant(i, views=19, contacts=1) for i in range(3)]

        with pytest.raises(InsufficientDataError) as exc_info:
            select_winner(variants)

        assert exc_info.value.collected == 19
        assert exc_info.value.required == 20

    def test_under_sampled_variants_are_not_candidates(self):
        variants = [
            make_variant(0, views=100, contacts=5),
            make_variant(1, views=10, contacts=9),
        ]

        selection = select_winner(variants)

        assert selection.winner.index == 0
        assert selection.evaluated_count == 1

    def test_exact_tie_goes_to_lowest_index(self):
        variants = [
            make_variant(2, views=100, contacts=10),
            make_variant(0, views=100, contacts=10),
            make_variant(1, views=100, contacts=10),
        ]

        selection = select_winner(variants)

        assert selection.winner.index == 0

    def test_no_variants(self):
        with pytest.raises(ValidationError):
            select_winner([])

    def test_to_dict(self):
        variants = [make_variant(0, views=100, contacts=10), make_variant(1, views=100)]

        data = select_winner(variants).to_dict()

        assert data["winner_index"] == 0
        assert data["winner_variant_id"] == str(variants[0].id)
        assert len(data["scores"]) == 2


class TestRankVariants:
    """Tests for rank_variants."""

    def test_best_first_ties_in_index_order(self):
        variants = [
            make_variant(1, views=100, contacts=5),
            make_variant(0, views=100, contacts=5),
            make_variant(2, views=100, contacts=20),
        ]

        ranked = rank_variants(variants)

        assert [s.index for s in ranked] == [2, 0, 1]
