"""
Unit tests for boundary records.

Run: pytest tests/unit/test_schemas.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from cadence.exceptions import InvalidInputError
from cadence.memory.fsrs import CardState
from cadence.priority.vectors import LexVector
from cadence.schemas import (
    ItemRecord,
    LearnerStateRecord,
    MemoryCardRecord,
    ResponseEventRecord,
    SessionRequestRecord,
)
from cadence.session.strategies import InterleavingStrategy
from cadence.types import ComponentType, ObjectType


def _item(item_id, object_type="LEX", **kwargs):
    fields = {
        "id": item_id,
        "object_type": object_type,
        "frequency": 0.5,
        "relational_density": 0.5,
        "contextual_contribution": 0.5,
    }
    fields.update(kwargs)
    return ItemRecord(**fields)


class TestResponseEventRecord:
    def test_to_domain(self):
        record = ResponseEventRecord(
            item_id="lex-1", correct=False, component="MORPH", session_id="s1", content="walked"
        )
        response = record.to_domain()

        assert response.id == "lex-1"
        assert response.component == ComponentType.MORPH
        assert response.correct is False
        assert response.content == "walked"

    def test_explicit_id(self):
        record = ResponseEventRecord(id="r7", item_id="lex-1", correct=True, component="LEX")
        assert record.to_domain().id == "r7"

    def test_conversions(self):
        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        record = ResponseEventRecord(
            item_id="lex-1",
            correct=True,
            cue_level=2,
            response_time_ms=1800,
            timestamp=when,
            component="LEX",
        )

        assert record.to_irt_response().response_time_ms == 1800
        assert record.to_stage_response().cue_level == 2
        observation = record.to_observation()
        assert observation.timestamp == when.timestamp()
        assert observation.response_time_ms == 1800

    def test_no_observation_without_latency(self):
        record = ResponseEventRecord(item_id="x", correct=True, component="LEX")
        assert record.to_observation() is None

    def test_cue_level_range(self):
        with pytest.raises(ValidationError):
            ResponseEventRecord(item_id="x", correct=True, component="LEX", cue_level=4)

    def test_unknown_component(self):
        with pytest.raises(ValidationError):
            ResponseEventRecord(item_id="x", correct=True, component="SEM")


class TestItemRecord:
    def test_to_domain(self):
        item = _item("mwe-1", "MWE", irt_difficulty=1.2).to_domain()

        assert item.object_type == ObjectType.MWE
        assert item.component == ComponentType.LEX
        assert item.irt_difficulty == 1.2
        assert item.vector is None

    def test_vector(self):
        item = _item("lex-1", vector={"concreteness": 0.9, "is_cognate": True}).to_domain()
        assert item.vector == LexVector(concreteness=0.9, is_cognate=True)

    def test_bad_vector_field(self):
        with pytest.raises(InvalidInputError):
            _item("lex-1", vector={"embedding_depth": 2}).to_domain()

    def test_item_parameter(self):
        param = _item("x", irt_discrimination=1.4, irt_difficulty=-0.5).to_item_parameter()
        assert (param.id, param.a, param.b, param.c) == ("x", 1.4, -0.5, None)

    @pytest.mark.parametrize(
        "field,value",
        [("frequency", 1.5), ("irt_difficulty", 4.0), ("irt_discrimination", 0.0), ("irt_guessing", 0.5)],
    )
    def test_ranges(self, field, value):
        with pytest.raises(ValidationError):
            _item("x", **{field: value})


class TestMemoryCardRecord:
    def test_round_trip(self, reviewed_card):
        record = MemoryCardRecord.from_domain(reviewed_card, mastery_stage=2)

        assert record.to_domain() == reviewed_card
        mastery = record.to_mastery()
        assert mastery.stage == 2
        assert mastery.card == reviewed_card

    def test_defaults_are_new(self):
        card = MemoryCardRecord().to_domain()
        assert card.state == CardState.NEW
        assert card.is_new

    def test_difficulty_range(self):
        with pytest.raises(ValidationError):
            MemoryCardRecord(difficulty=11)


class TestLearnerStateRecord:
    def test_to_domain(self):
        record = LearnerStateRecord(thetas={"LEX": 1.0, "SYNT": 0.0}, fatigue=0.2, cefr_level="B1")
        state = record.to_domain()

        assert state.average_theta == 0.5
        assert state.fatigue == 0.2
        assert state.cefr_level == "B1"

    def test_user_state(self):
        record = LearnerStateRecord(thetas={"LEX": 1.0}, automated_components=["PHON", "MORPH"])
        user = record.to_user_state()

        assert user.theta == 1.0
        assert user.automated_components == frozenset({ComponentType.PHON, ComponentType.MORPH})

    def test_no_automatization_data(self):
        assert LearnerStateRecord().to_user_state().automated_components is None


class TestSessionRequestRecord:
    def test_to_domain_ranks_candidates(self, now):
        record = SessionRequestRecord(
            items=[
                _item("low", frequency=0.1),
                _item("high", frequency=0.9),
                _item("blocked", prerequisites_satisfied=False),
            ],
            cards={
                "high": MemoryCardRecord(
                    stability=10.0,
                    retrievability=1.0,
                    last_review=now - timedelta(days=10),
                    reps=3,
                    state="review",
                    mastery_stage=2,
                )
            },
            max_items=5,
            strategy="hybrid",
            now=now,
        )

        request = record.to_domain()

        ids = [c.item_id for c in request.candidates]
        assert ids[0] == "high"
        assert set(ids) == {"low", "high", "blocked"}
        by_id = {c.item_id: c for c in request.candidates}
        assert by_id["high"].card is not None
        assert by_id["high"].mastery_stage == 2
        assert by_id["low"].card is None
        assert by_id["blocked"].prerequisites_met is False
        assert request.strategy == InterleavingStrategy.HYBRID
        assert request.session_config.now == now
        assert request.session_config.max_items == 5

    def test_default_clock(self):
        request = SessionRequestRecord(items=[_item("a")]).to_domain()
        assert request.session_config.now.tzinfo is not None

    def test_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            SessionRequestRecord(duration_minutes=0)
