"""
Unit tests for the FSRS memory model.

Run: pytest tests/unit/test_fsrs.py -v
"""

import math
from dataclasses import replace
from datetime import timedelta

import pytest

from cadence.exceptions import InvalidInputError
from cadence.memory.fsrs import (
    DEFAULT_PARAMETERS,
    CardState,
    FSRSParameters,
    MemoryCard,
    Rating,
    create_new_card,
    fsrs_priority,
    is_due,
    next_interval,
    next_review_date,
    retrievability,
    retrievability_after,
    schedule,
    validate_card,
)


class TestRetrievability:
    def test_equals_one_at_zero_elapsed(self, reviewed_card):
        assert retrievability(reviewed_card, reviewed_card.last_review) == 1.0

    def test_strictly_decreasing_in_elapsed_time(self, reviewed_card):
        start = reviewed_card.last_review
        values = [retrievability(reviewed_card, start + timedelta(days=d)) for d in (0.5, 1, 5, 20, 100)]
        assert all(a > b for a, b in zip(values, values[1:]))

    def test_matches_exponential_curve(self):
        assert retrievability_after(10, 10) == pytest.approx(math.exp(-1))

    def test_never_reviewed_card_is_zero(self, now):
        assert retrievability(create_new_card(), now) == 0.0

    def test_clock_before_last_review_counts_as_zero_elapsed(self, reviewed_card):
        assert retrievability(reviewed_card, reviewed_card.last_review - timedelta(days=1)) == 1.0


class TestIntervals:
    def test_interval_inverts_retrievability(self):
        interval = next_interval(10.0)
        assert retrievability_after(interval, 10.0) == pytest.approx(0.9)

    def test_interval_capped_at_maximum(self):
        params = FSRSParameters(maximum_interval=5)
        assert next_interval(1000.0, params) == 5

    def test_review_date_round_trip_hits_target_retention(self, reviewed_card):
        due = next_review_date(reviewed_card)
        assert retrievability(reviewed_card, due) == pytest.approx(
            DEFAULT_PARAMETERS.request_retention, abs=1e-6
        )

    def test_round_trip_with_custom_retention(self, reviewed_card):
        params = FSRSParameters(request_retention=0.8)
        due = next_review_date(reviewed_card, params)
        assert retrievability(reviewed_card, due, params) == pytest.approx(0.8, abs=1e-6)

    def test_new_card_has_no_review_date(self):
        assert next_review_date(create_new_card()) is None

    def test_is_due(self, reviewed_card, now):
        # Ten days elapsed against a ~1 day interval
        assert is_due(reviewed_card, now) is True
        assert is_due(reviewed_card, reviewed_card.last_review) is False


class TestScheduleNewCard:
    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    def test_success_moves_to_review(self, now, rating):
        result = schedule(create_new_card(), rating, now)
        assert result.card.state == CardState.REVIEW
        assert result.card.stability == pytest.approx(DEFAULT_PARAMETERS.w[rating - 1])
        assert result.card.retrievability == 1.0
        assert result.card.reps == 1
        assert result.card.last_review == now

    def test_again_moves_to_learning_without_lapse(self, now):
        result = schedule(create_new_card(), Rating.AGAIN, now)
        assert result.card.state == CardState.LEARNING
        assert result.card.lapses == 0

    def test_easier_rating_gives_lower_difficulty(self, now):
        hard = schedule(create_new_card(), Rating.HARD, now).card
        easy = schedule(create_new_card(), Rating.EASY, now).card
        assert easy.difficulty < hard.difficulty

    def test_next_review_follows_interval(self, now):
        result = schedule(create_new_card(), Rating.GOOD, now)
        assert result.next_review == now + timedelta(days=result.interval_days)


class TestScheduleReview:
    def test_good_review_after_ten_days(self, reviewed_card, now):
        result = schedule(reviewed_card, Rating.GOOD, now)
        assert result.retrievability_at_review == pytest.approx(0.368, abs=1e-3)
        assert result.card.stability > reviewed_card.stability
        assert result.card.reps == 4

    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    @pytest.mark.parametrize("elapsed", [0, 0.5, 3, 10, 60])
    def test_success_never_decreases_stability(self, reviewed_card, rating, elapsed):
        when = reviewed_card.last_review + timedelta(days=elapsed)
        result = schedule(reviewed_card, rating, when)
        assert result.card.stability >= reviewed_card.stability
        assert result.card.state == CardState.REVIEW

    @pytest.mark.parametrize("elapsed", [0, 1, 10, 60])
    def test_lapse(self, reviewed_card, elapsed):
        when = reviewed_card.last_review + timedelta(days=elapsed)
        result = schedule(reviewed_card, Rating.AGAIN, when)
        assert result.card.lapses == reviewed_card.lapses + 1
        assert result.card.state == CardState.RELEARNING
        assert result.card.stability <= reviewed_card.stability
        assert result.card.stability >= DEFAULT_PARAMETERS.stability_floor

    def test_easy_grows_stability_more_than_hard(self, reviewed_card, now):
        hard = schedule(reviewed_card, Rating.HARD, now).card
        easy = schedule(reviewed_card, Rating.EASY, now).card
        assert easy.stability > hard.stability

    def test_difficulty_stays_clamped(self, now):
        card = MemoryCard(
            difficulty=10.0,
            stability=2.0,
            retrievability=1.0,
            last_review=now - timedelta(days=3),
            reps=5,
            state=CardState.REVIEW,
        )
        for _ in range(10):
            card = schedule(card, Rating.AGAIN, card.last_review + timedelta(days=1)).card
        assert 1.0 <= card.difficulty <= 10.0

    def test_input_card_is_not_modified(self, reviewed_card, now):
        before = replace(reviewed_card)
        schedule(reviewed_card, Rating.GOOD, now)
        assert reviewed_card == before

    @pytest.mark.parametrize("rating", [0, 5, -1, True])
    def test_invalid_rating_raises(self, reviewed_card, now, rating):
        with pytest.raises(InvalidInputError):
            schedule(reviewed_card, rating, now)


class TestFsrsPriority:
    def test_new_card_scores_one(self, now):
        assert fsrs_priority(create_new_card(), now) == 1.0

    def test_in_unit_interval(self, reviewed_card, now):
        assert 0.0 <= fsrs_priority(reviewed_card, now) <= 1.0

    def test_overdue_card_outranks_fresh_card(self, reviewed_card):
        fresh = fsrs_priority(reviewed_card, reviewed_card.last_review)
        overdue = fsrs_priority(reviewed_card, reviewed_card.last_review + timedelta(days=30))
        assert overdue > fresh


class TestParameters:
    def test_rejects_retention_out_of_range(self):
        with pytest.raises(InvalidInputError):
            FSRSParameters(request_retention=1.0)

    def test_rejects_wrong_weight_count(self):
        with pytest.raises(InvalidInputError):
            FSRSParameters(w=(1.0, 2.0))

    def test_validate_card(self):
        with pytest.raises(InvalidInputError):
            validate_card(MemoryCard(difficulty=11))
        assert validate_card(create_new_card()) == create_new_card()


class TestCorruptCards:
    @pytest.mark.parametrize(
        "fields",
        [
            {"difficulty": math.nan},
            {"stability": math.nan},
            {"stability": -1.0},
            {"stability": math.inf},
            {"retrievability": math.nan},
            {"lapses": -1},
            {"reps": -2},
        ],
    )
    def test_schedule_rejects(self, reviewed_card, now, fields):
        with pytest.raises(InvalidInputError):
            schedule(replace(reviewed_card, **fields), Rating.GOOD, now)

    def test_retrievability_rejects_nan_stability(self, reviewed_card, now):
        with pytest.raises(InvalidInputError):
            retrievability(replace(reviewed_card, stability=math.nan), now)
