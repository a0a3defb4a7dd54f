"""Tests for lingo_life.models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from lingo_life.models import (
    AndRule,
    CheckRule,
    CreateMutation,
    GameState,
    GoMutation,
    LocationRule,
    Mutation,
    Narration,
    NpcResponse,
    TagMutation,
    Understanding,
    WorldObject,
)

mutation_adapter = TypeAdapter(Mutation)
rule_adapter = TypeAdapter(CheckRule)


class TestWorldObject:
    def test_defaults(self) -> None:
        obj = WorldObject(id="cup", name={"target": "la taza", "native": "cup"}, location="kitchen")
        assert obj.tags == frozenset()
        assert obj.needs_effect == {}
        assert obj.description == ""

    def test_frozen(self) -> None:
        obj = WorldObject(id="cup", name={"target": "la taza", "native": "cup"}, location="kitchen")
        with pytest.raises(ValidationError):
            obj.location = "inventory"

    def test_tags_dump_sorted(self) -> None:
        obj = WorldObject(
            id="stove", name={"target": "la estufa", "native": "stove"},
            location="kitchen", tags=["on", "hot", "dirty"],
        )
        assert obj.model_dump(mode="json")["tags"] == ["dirty", "hot", "on"]

    def test_needs_effect_alias(self) -> None:
        obj = WorldObject.model_validate({
            "id": "bread", "name": {"target": "el pan", "native": "bread"},
            "location": "kitchen", "needsEffect": {"hunger": 20},
        })
        assert obj.needs_effect == {"hunger": 20}


class TestMutationUnion:
    def test_go_from_wire_name(self) -> None:
        m = mutation_adapter.validate_python({"type": "go", "locationId": "kitchen"})
        assert isinstance(m, GoMutation)
        assert m.location_id == "kitchen"

    def test_tag_defaults_to_empty_edits(self) -> None:
        m = mutation_adapter.validate_python({"type": "tag", "objectId": "stove"})
        assert isinstance(m, TagMutation)
        assert m.add == ()
        assert m.remove == ()

    def test_create_uses_object_key(self) -> None:
        m = mutation_adapter.validate_python({
            "type": "create",
            "object": {"id": "toast", "name": {"target": "la tostada", "native": "toast"},
                       "location": "kitchen"},
        })
        assert isinstance(m, CreateMutation)
        assert m.obj.id == "toast"

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            mutation_adapter.validate_python({"type": "teleport", "locationId": "moon"})

    def test_dump_by_alias_matches_wire_format(self) -> None:
        m = GoMutation(location_id="bathroom")
        assert m.model_dump(by_alias=True) == {"type": "go", "locationId": "bathroom"}


class TestCheckRuleUnion:
    def test_nested_and(self) -> None:
        rule = rule_adapter.validate_python({
            "type": "and",
            "rules": [
                {"type": "location", "locationId": "kitchen"},
                {"type": "completedStep", "stepId": "wake_up"},
            ],
        })
        assert isinstance(rule, AndRule)
        assert isinstance(rule.rules[0], LocationRule)
        assert len(rule.rules) == 2

    def test_player_tag_has_defaults_true(self) -> None:
        rule = rule_adapter.validate_python({"type": "playerTag", "tag": "standing"})
        assert rule.has is True


class TestGameState:
    def test_find_object(self, state: GameState) -> None:
        assert state.find_object("refrigerator").location == "kitchen"
        assert state.find_object("unicorn") is None

    def test_json_roundtrip_is_equal(self, state: GameState) -> None:
        dumped = state.model_dump_json(by_alias=True)
        assert GameState.model_validate_json(dumped) == state


class TestCollaboratorResults:
    def test_understanding_defaults_to_not_valid(self) -> None:
        u = Understanding()
        assert u.understood is False
        assert u.valid is False
        assert u.grammar.score == 100
        assert u.mutations == ()

    def test_npc_response_accepts_language_named_keys(self) -> None:
        r = NpcResponse.model_validate({"npcId": "roommate", "spanish": "Hola", "english": "Hi"})
        assert r.target == "Hola"
        assert r.native == "Hi"

    def test_narration_wire_names(self) -> None:
        n = Narration.model_validate({
            "message": "You stretch.",
            "stepsCompleted": ["wake_up"],
            "questsCompleted": [],
        })
        assert n.steps_completed == ("wake_up",)
        assert n.npc_response is None
