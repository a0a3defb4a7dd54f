"""Tests for lingo_life.collaborators: output parsing and prompt context."""

import pytest

from lingo_life import collaborators
from lingo_life.collaborators import (
    CollaboratorError,
    build_context,
    extract_json,
    parse_mutations,
    parse_narration,
    parse_understanding,
)
from lingo_life.config import default_config
from lingo_life.llm import LLMError
from lingo_life.models import ChatEntry, GoMutation, TagMutation, Understanding

LANGUAGE = default_config()["language"]


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

class TestExtractJson:
    def test_plain_object(self) -> None:
        assert extract_json('{"valid": true}') == {"valid": True}

    def test_object_inside_chatter(self) -> None:
        output = 'Sure! Here you go:\n```json\n{"valid": false}\n```\nAnything else?'
        assert extract_json(output) == {"valid": False}

    def test_no_object_raises(self) -> None:
        with pytest.raises(CollaboratorError, match="No JSON object"):
            extract_json("I cannot help with that.")

    def test_broken_json_raises(self) -> None:
        with pytest.raises(CollaboratorError, match="invalid JSON"):
            extract_json('{"valid": true,,}')

    def test_collaborator_error_is_llm_error(self) -> None:
        assert issubclass(CollaboratorError, LLMError)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseMutations:
    def test_malformed_items_dropped(self) -> None:
        mutations = parse_mutations([
            {"type": "go", "locationId": "kitchen"},
            {"type": "teleport", "locationId": "moon"},
            {"type": "tag"},
            {"type": "tag", "objectId": "stove", "add": ["on"]},
        ])
        assert mutations == (
            GoMutation(location_id="kitchen"),
            TagMutation(object_id="stove", add=("on",)),
        )

    def test_missing_or_wrong_shape(self) -> None:
        assert parse_mutations(None) == ()
        assert parse_mutations({"type": "go"}) == ()


class TestParseUnderstanding:
    def test_full_reply(self) -> None:
        output = """{
          "understood": true,
          "grammar": {"score": 70, "issues": [
            {"type": "article", "original": "abro nevera", "corrected": "abro la nevera",
             "explanation": "Use the article."}
          ]},
          "targetModel": "Abro la nevera.",
          "valid": true,
          "mutations": [{"type": "tag", "objectId": "refrigerator", "add": ["open"], "remove": ["closed"]}]
        }"""
        u = parse_understanding(output)
        assert u.understood and u.valid
        assert u.grammar.score == 70
        assert u.grammar.issues[0].corrected == "abro la nevera"
        assert u.target_model == "Abro la nevera."
        assert u.mutations == (
            TagMutation(object_id="refrigerator", add=("open",), remove=("closed",)),
        )

    def test_invalid_action(self) -> None:
        u = parse_understanding('{"understood": true, "valid": false, "invalidReason": "The door is locked."}')
        assert u.valid is False
        assert u.invalid_reason == "The door is locked."
        assert u.mutations == ()

    def test_wrong_shape_raises(self) -> None:
        with pytest.raises(CollaboratorError, match="wrong shape"):
            parse_understanding('{"understood": "perhaps", "grammar": 7}')

    def test_null_fields_take_defaults(self) -> None:
        u = parse_understanding(
            '{"understood": true, "valid": true, "grammar": null, "targetModel": null, "mutations": null}'
        )
        assert u.valid
        assert u.grammar.score == 100
        assert u.target_model == ""
        assert u.mutations == ()

    def test_null_inside_grammar(self) -> None:
        u = parse_understanding('{"understood": true, "grammar": {"score": 60, "issues": null}}')
        assert u.grammar.score == 60
        assert u.grammar.issues == ()


class TestParseNarration:
    def test_full_reply(self) -> None:
        n = parse_narration("""{
          "message": "Carlos grins and takes the cup.",
          "stepsCompleted": ["go_to_kitchen"],
          "questsCompleted": ["carlos_coffee"],
          "npcResponse": {"npcId": "roommate", "target": "¡Gracias!", "native": "Thanks!"},
          "mutations": [{"type": "npcMood", "npcId": "roommate", "mood": "happy"}]
        }""")
        assert n.message == "Carlos grins and takes the cup."
        assert n.steps_completed == ("go_to_kitchen",)
        assert n.quests_completed == ("carlos_coffee",)
        assert n.npc_response.target == "¡Gracias!"
        assert n.mutations[0].mood == "happy"

    def test_minimal_reply(self) -> None:
        n = parse_narration('{"message": "You stretch."}')
        assert n.npc_response is None
        assert n.mutations == ()

    def test_null_lists_are_empty(self) -> None:
        n = parse_narration(
            '{"message": "ok", "stepsCompleted": null, "questsStarted": null,'
            ' "questsCompleted": null, "npcResponse": null}'
        )
        assert n.message == "ok"
        assert n.steps_completed == ()
        assert n.quests_started == ()
        assert n.quests_completed == ()
        assert n.npc_response is None


# ---------------------------------------------------------------------------
# Calls through an LLM
# ---------------------------------------------------------------------------

class TestPasses:
    async def test_understand_sends_understand_stage(self, state, home, stub_llm) -> None:
        llm = stub_llm({"understand": [{"understood": True, "valid": True, "mutations": []}]})
        u = await collaborators.understand(llm, state, home, "Me levanto", LANGUAGE)
        assert u.valid is True
        assert llm.stages() == ["understand"]
        assert '"Me levanto"' in llm.prompt(0)
        llm.assert_exhausted()

    async def test_narrate_sends_applied_mutations(self, state, home, stub_llm) -> None:
        llm = stub_llm({"narrate": [{"message": "You go."}]})
        understanding = Understanding(understood=True, valid=True, target_model="Voy al baño.")
        n = await collaborators.narrate(
            llm, state, home, "voy al baño", understanding,
            [GoMutation(location_id="bathroom")], LANGUAGE,
        )
        assert n.message == "You go."
        assert '[{"type": "go", "locationId": "bathroom"}]' in llm.prompt(0)
        assert 'CORRECTED Spanish: "Voy al baño."' in llm.prompt(0)

    async def test_garbage_output_raises(self, state, home, stub_llm) -> None:
        llm = stub_llm({"understand": ["no idea"]})
        with pytest.raises(CollaboratorError):
            await collaborators.understand(llm, state, home, "???", LANGUAGE)


# ---------------------------------------------------------------------------
# Prompt context
# ---------------------------------------------------------------------------

class TestBuildContext:
    def test_bedroom(self, state, home) -> None:
        ctx = build_context(state, home, LANGUAGE)
        assert ctx["location"] == {"id": "bedroom", "target": "el dormitorio", "native": "bedroom"}
        assert ctx["player_tags"] == ["in_bed"]
        assert [e["to"] for e in ctx["exits"]] == ["bathroom", "kitchen"]
        assert ctx["npcs"] == []
        assert ctx["tutorial"]["current"] == {"id": "wake_up", "title": "Wake up and start your day"}
        assert ctx["available_quests"] == []

    def test_closed_fridge_hides_contents(self, state, home) -> None:
        kitchen = state.model_copy(update={"current_location": "kitchen"})
        ids = [o["id"] for o in build_context(kitchen, home, LANGUAGE)["objects"]]
        assert "refrigerator" in ids
        assert "milk" not in ids

    def test_open_fridge_marks_container(self, state, home) -> None:
        fridge = state.find_object("refrigerator").model_copy(update={"tags": frozenset({"open", "container"})})
        kitchen = state.model_copy(update={
            "current_location": "kitchen",
            "objects": tuple(fridge if o.id == "refrigerator" else o for o in state.objects),
        })
        objects = {o["id"]: o for o in build_context(kitchen, home, LANGUAGE)["objects"]}
        assert objects["milk"]["container"] == "refrigerator"
        assert objects["stove"]["container"] is None

    def test_npcs_with_history(self, state, home) -> None:
        roommate = state.npcs["roommate"].model_copy(update={
            "chat_history": (ChatEntry(player_input="Hola", npc_response="Buenos días"),),
        })
        kitchen = state.model_copy(update={
            "current_location": "kitchen",
            "npcs": {**state.npcs, "roommate": roommate},
        })
        ctx = build_context(kitchen, home, LANGUAGE)
        assert [n["id"] for n in ctx["npcs"]] == ["roommate"]
        assert ctx["npcs"][0]["history"][0]["speaker"] == "Carlos"
        assert [q["id"] for q in ctx["available_quests"]] == ["carlos_coffee"]
