"""
Unit tests for the priority engine.

Run: pytest tests/unit/test_priority.py -v
"""

import math
from dataclasses import replace
from datetime import timedelta

import pytest

from cadence.bottleneck.detector import BottleneckAnalysis, CascadeAnalysis
from cadence.exceptions import InvalidInputError
from cadence.memory.fsrs import create_new_card
from cadence.memory.mastery import MasteryState
from cadence.priority.engine import (
    NO_ADJUSTMENTS,
    LearningItem,
    PriorityCache,
    PriorityConfig,
    PriorityWeights,
    UserState,
    adjustments_from_bottleneck,
    build_learning_queue,
    compute_fre,
    compute_priority,
    compute_priority_record,
    compute_urgency,
    estimate_cost_factors,
    infer_level,
    prerequisite_penalty,
    select_session_items,
    weights_for_level,
)
from cadence.priority.vectors import LexVector
from cadence.types import ComponentType, ObjectType


def _item(item_id="x", object_type=ObjectType.LEX, frequency=0.5, **kwargs):
    return LearningItem(item_id, object_type, frequency, 0.5, 0.5, **kwargs)


class TestWeights:
    def test_levels(self):
        assert infer_level(-2) == "beginner"
        assert infer_level(0) == "intermediate"
        assert infer_level(1.5) == "advanced"

    def test_beginner_favours_frequency(self):
        assert weights_for_level("beginner").f > weights_for_level("advanced").f

    def test_unknown_level_uses_defaults(self):
        assert weights_for_level("expert") == PriorityWeights()

    def test_negative_weight_rejected(self):
        with pytest.raises(InvalidInputError):
            PriorityWeights(f=-0.1)

    def test_fre(self, sample_items):
        assert compute_fre(sample_items[0]) == pytest.approx(0.4 * 0.9 + 0.3 * 0.5 + 0.3 * 0.6)


class TestLearningItem:
    @pytest.mark.parametrize("frequency", [-0.1, 1.5, math.nan])
    def test_fre_inputs_validated(self, frequency):
        with pytest.raises(InvalidInputError):
            _item(frequency=frequency)

    def test_component(self):
        assert _item(object_type=ObjectType.MWE).component == ComponentType.LEX
        assert _item(object_type=ObjectType.G2P).component == ComponentType.PHON


class TestCost:
    def test_harder_items_cost_more(self):
        easy = estimate_cost_factors(_item(irt_difficulty=-2), UserState()).cost
        hard = estimate_cost_factors(_item(irt_difficulty=2), UserState()).cost
        assert hard > easy

    def test_ability_gap_adds_exposure_need(self):
        factors = estimate_cost_factors(_item(irt_difficulty=1.5), UserState(theta=0.0))
        assert factors.exposure_need == pytest.approx(0.5)
        assert factors.component_modifier is None

    def test_vector_scales_cost(self):
        cognate = estimate_cost_factors(_item(vector=LexVector(is_cognate=True)), UserState())
        false_friend = estimate_cost_factors(_item(vector=LexVector(false_friend_risk=True)), UserState())
        assert cognate.component_modifier is not None
        assert cognate.cost < false_friend.cost


class TestPrerequisites:
    def test_no_automatization_data_means_no_penalty(self):
        assert prerequisite_penalty(_item(object_type=ObjectType.SYNT), UserState()) == 0.0

    def test_unautomated_foundation_penalized(self):
        state = UserState(automated_components=frozenset({ComponentType.PHON}))
        assert prerequisite_penalty(_item(object_type=ObjectType.SYNT), state) == 0.5

    def test_automated_chain_not_penalized(self):
        state = UserState(
            automated_components=frozenset({ComponentType.PHON, ComponentType.MORPH, ComponentType.LEX})
        )
        assert prerequisite_penalty(_item(object_type=ObjectType.SYNT), state) == 0.0

    def test_foundation_layer_never_penalized_by_chain(self):
        state = UserState(automated_components=frozenset())
        assert prerequisite_penalty(_item(object_type=ObjectType.G2P), state) == 0.0

    def test_item_prerequisites(self):
        assert prerequisite_penalty(_item(prerequisites_satisfied=False), UserState()) == 0.5


class TestUrgency:
    def test_new_item_tier(self, now):
        assert compute_urgency(None, now) == 0.5
        assert compute_urgency(create_new_card(), now) == 0.5

    def test_due_card_at_least_one_and_capped(self, reviewed_card, now):
        urgency = compute_urgency(reviewed_card, now)
        assert 1.0 <= urgency <= 3.0

    def test_not_due_card_below_scale(self, reviewed_card):
        urgency = compute_urgency(reviewed_card, reviewed_card.last_review + timedelta(hours=12))
        assert 0.0 <= urgency < 0.1

    def test_tiers_ordered(self, reviewed_card, now):
        due = compute_urgency(reviewed_card, now)
        new = compute_urgency(None, now)
        fresh = compute_urgency(reviewed_card, reviewed_card.last_review)
        assert due > new > fresh

    def test_reviewed_card_needs_clock(self, reviewed_card):
        with pytest.raises(InvalidInputError):
            compute_urgency(reviewed_card, None)


class TestComputePriority:
    def test_increasing_in_fre(self):
        low = compute_priority(_item(frequency=0.2), UserState())
        high = compute_priority(_item(frequency=0.9), UserState())
        assert high > low

    def test_decreasing_in_cost(self):
        cheap = compute_priority(_item(irt_difficulty=-1), UserState())
        costly = compute_priority(_item(irt_difficulty=2), UserState())
        assert cheap > costly

    def test_transfer_bonus_helps(self):
        plain = compute_priority(_item(), UserState())
        transfer = compute_priority(_item(l1_transfer_coefficient=1.0), UserState())
        assert transfer > plain

    def test_record_breakdown(self):
        record = compute_priority_record(_item(), UserState())
        assert record.urgency == 0.5
        assert record.priority == pytest.approx(record.base_priority + record.urgency)
        assert record.base_priority == pytest.approx(
            record.fre / max(0.1, record.cost - record.transfer_bonus + record.prerequisite_penalty)
        )

    def test_urgency_weight(self):
        record = compute_priority_record(_item(), UserState(), config=PriorityConfig(urgency_weight=0.0))
        assert record.priority == pytest.approx(record.base_priority)

    def test_corrupt_card_rejected(self, reviewed_card, now):
        with pytest.raises(InvalidInputError):
            compute_priority_record(_item(), UserState(), replace(reviewed_card, difficulty=math.nan), now)


class TestBottleneckAdjustments:
    def _analysis(self, **kwargs):
        defaults = dict(
            primary_bottleneck=ComponentType.MORPH,
            confidence=0.8,
            evidence=[],
            recommendation="",
        )
        defaults.update(kwargs)
        return BottleneckAnalysis(**defaults)

    def test_scaled_by_confidence(self):
        adjustments = adjustments_from_bottleneck(self._analysis())
        assert adjustments.root_component == ComponentType.MORPH
        assert adjustments.urgency_boost == pytest.approx(0.4)
        assert adjustments.downstream_penalty == pytest.approx(0.2)
        assert adjustments.downstream == frozenset(
            {ComponentType.LEX, ComponentType.SYNT, ComponentType.PRAG}
        )

    def test_cascade_limits_downstream(self):
        cascade = CascadeAnalysis(
            root_cause=ComponentType.MORPH,
            chain=[ComponentType.MORPH, ComponentType.SYNT],
            confidence=0.7,
        )
        adjustments = adjustments_from_bottleneck(self._analysis(cascade=cascade))
        assert adjustments.downstream == frozenset({ComponentType.SYNT})

    def test_insufficient_data(self):
        analysis = self._analysis(primary_bottleneck=None, sufficient_data=False)
        assert adjustments_from_bottleneck(analysis) == NO_ADJUSTMENTS

    def test_root_items_gain_urgency(self):
        state = UserState(adjustments=adjustments_from_bottleneck(self._analysis()))
        morph = compute_priority_record(_item(object_type=ObjectType.MORPH), state)
        synt = compute_priority_record(_item(object_type=ObjectType.SYNT), state)
        assert morph.urgency == pytest.approx(0.9)
        assert synt.prerequisite_penalty == pytest.approx(0.2)


class TestLearningQueue:
    def test_sorted_descending(self, sample_items, now):
        queue = build_learning_queue(sample_items, UserState(), {}, now)
        priorities = [q.priority for q in queue]
        assert priorities == sorted(priorities, reverse=True)
        assert all(q.is_new and q.fsrs_priority == 1.0 for q in queue)

    def test_deterministic(self, sample_items, now):
        first = build_learning_queue(sample_items, UserState(), {}, now)
        second = build_learning_queue(list(reversed(sample_items)), UserState(), {}, now)
        assert [q.item_id for q in first] == [q.item_id for q in second]

    def test_ties_broken_by_id(self, now):
        twins = [_item("b"), _item("a"), _item("c")]
        assert [q.item_id for q in build_learning_queue(twins, UserState(), {}, now)] == ["a", "b", "c"]

    def test_due_review_jumps_ahead(self, sample_items, reviewed_card, now):
        mastery = {"lex-3": MasteryState(stage=2, card=reviewed_card)}
        queue = build_learning_queue(sample_items, UserState(), mastery, now)
        assert queue[0].item_id == "lex-3"
        assert queue[0].is_new is False
        assert queue[0].mastery_stage == 2

    def test_cache_reused(self, sample_items, now):
        cache = PriorityCache(max_entries=16)
        first = build_learning_queue(sample_items, UserState(), {}, now, cache=cache)
        second = build_learning_queue(sample_items, UserState(), {}, now, cache=cache)
        assert first == second
        assert cache.misses == len(sample_items)
        assert cache.hits == len(sample_items)
        cache.clear()
        assert len(cache) == 0


class TestSelectSessionItems:
    def _queue(self, reviewed_card, now):
        items = [_item(f"due-{i}") for i in range(2)] + [_item(f"new-{i}") for i in range(6)]
        mastery = {f"due-{i}": MasteryState(card=reviewed_card) for i in range(2)}
        return build_learning_queue(items, UserState(), mastery, now)

    def test_due_reviews_always_included(self, reviewed_card, now):
        selected = select_session_items(self._queue(reviewed_card, now), 5)
        ids = {q.item_id for q in selected}
        assert len(selected) == 5
        assert {"due-0", "due-1"} <= ids

    def test_new_items_limited_when_reviews_fill_slots(self, reviewed_card, now):
        queue = self._queue(reviewed_card, now)
        due_only = [q for q in queue if not q.is_new]
        assert select_session_items(due_only + [q for q in queue if q.is_new], 2) == due_only

    def test_sorted_by_priority(self, reviewed_card, now):
        selected = select_session_items(self._queue(reviewed_card, now), 8)
        assert [q.priority for q in selected] == sorted((q.priority for q in selected), reverse=True)

    def test_invalid_size(self, reviewed_card, now):
        with pytest.raises(InvalidInputError):
            select_session_items(self._queue(reviewed_card, now), -1)

    def test_zero_size(self, reviewed_card, now):
        assert select_session_items(self._queue(reviewed_card, now), 0) == []


class TestUserState:
    def test_nan_theta_rejected(self):
        with pytest.raises(InvalidInputError):
            UserState(theta=math.nan)

    def test_explicit_weights_win(self):
        weights = PriorityWeights(f=1.0, r=0.0, e=0.0)
        assert UserState(theta=2.0, weights=weights).effective_weights() == weights

    def test_replace_keeps_validation(self):
        with pytest.raises(InvalidInputError):
            replace(UserState(), theta=math.inf)
