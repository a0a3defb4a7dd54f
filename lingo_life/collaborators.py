"""Adapters for the two LLM collaborator passes of a turn.

    understand()  player utterance + world context -> Understanding
    narrate()     applied mutations + resulting state -> Narration

This is the trust boundary. Collaborator output is untyped JSON written by a
model, so it is parsed here into typed ``Understanding`` / ``Narration``
values before anything reaches the engine:

- text that contains no JSON object, or JSON of the wrong shape, raises
  ``CollaboratorError`` and the turn is abandoned;
- a single mutation with an unknown ``type`` or missing fields is dropped
  with a warning and the rest of the list is kept.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from lingo_life import progression, world
from lingo_life.llm import LLM, LLMError
from lingo_life.models import (
    GameState,
    ModuleDefinition,
    Mutation,
    Narration,
    Understanding,
    WorldObject,
)
from lingo_life.prompts import render_template
from lingo_life.rules import describe

logger = logging.getLogger(__name__)

_mutation_adapter: TypeAdapter[Mutation] = TypeAdapter(Mutation)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class CollaboratorError(LLMError):
    """The collaborator answered, but not with anything the engine can use."""


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------

async def understand(
    llm: LLM,
    state: GameState,
    module: ModuleDefinition,
    utterance: str,
    language: dict[str, str],
) -> Understanding:
    context = build_context(state, module, language)
    context["utterance"] = utterance
    output = await llm("understand", render_template("understand", context))
    return parse_understanding(output)


async def narrate(
    llm: LLM,
    state: GameState,
    module: ModuleDefinition,
    utterance: str,
    understanding: Understanding,
    applied: Iterable[Mutation],
    language: dict[str, str],
) -> Narration:
    context = build_context(state, module, language)
    context["utterance"] = utterance
    context["target_model"] = understanding.target_model
    context["applied_mutations"] = json.dumps(
        [m.model_dump(by_alias=True, mode="json") for m in applied],
        ensure_ascii=False,
    )
    output = await llm("narrate", render_template("narrate", context))
    return parse_narration(output)


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------

def extract_json(output: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of a model reply."""
    match = _JSON_OBJECT.search(output)
    if match is None:
        raise CollaboratorError(f"No JSON object in collaborator output: {output[:200]!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"Collaborator returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CollaboratorError("Collaborator output must be a JSON object")
    return data


def parse_mutations(raw: Any) -> tuple[Mutation, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        logger.warning("Ignoring non-list mutations field: %r", raw)
        return ()
    mutations: list[Mutation] = []
    for item in raw:
        try:
            mutations.append(_mutation_adapter.validate_python(item))
        except ValidationError as e:
            logger.warning("Dropping malformed mutation %r: %s", item, e.errors()[0]["msg"])
    return tuple(mutations)


def _without_nulls(data: dict[str, Any]) -> dict[str, Any]:
    """Drop null fields, here and in nested objects, so they fall back to their defaults."""
    return {
        key: _without_nulls(value) if isinstance(value, dict) else value
        for key, value in data.items()
        if value is not None
    }


def parse_understanding(output: str) -> Understanding:
    data = _without_nulls(extract_json(output))
    mutations = parse_mutations(data.pop("mutations", None))
    try:
        result = Understanding.model_validate(data)
    except ValidationError as e:
        raise CollaboratorError(f"Understanding output has the wrong shape: {e}") from e
    return result.model_copy(update={"mutations": mutations})


def parse_narration(output: str) -> Narration:
    data = _without_nulls(extract_json(output))
    mutations = parse_mutations(data.pop("mutations", None))
    try:
        result = Narration.model_validate(data)
    except ValidationError as e:
        raise CollaboratorError(f"Narration output has the wrong shape: {e}") from e
    return result.model_copy(update={"mutations": mutations})


# ---------------------------------------------------------------------------
# Prompt context
# ---------------------------------------------------------------------------

def _object_entry(obj: WorldObject, here: str) -> dict[str, Any]:
    return {
        "id": obj.id,
        "target": obj.name.target,
        "native": obj.name.native,
        "tags": sorted(obj.tags),
        "container": obj.location if obj.location != here else None,
    }


def build_context(
    state: GameState, module: ModuleDefinition, language: dict[str, str]
) -> dict[str, Any]:
    """Template variables describing what the player can currently see and do."""
    here = state.current_location
    location = module.locations.get(here)

    npcs = []
    for npc_id, npc in world.npcs_here(state).items():
        definition = module.npc(npc_id)
        if definition is None:
            continue
        npcs.append({
            "id": npc_id,
            "target": definition.name.target,
            "native": definition.name.native,
            "is_pet": definition.is_pet,
            "personality": definition.personality,
            "mood": npc.mood,
            "wants": npc.wants_item,
            "history": [
                {**entry.model_dump(), "speaker": definition.name.native}
                for entry in npc.chat_history
            ],
        })

    tutorial: dict[str, Any] = {"current": None}
    current = module.step(state.current_step) if state.current_step else None
    if current is not None:
        tutorial = {
            "current": {"id": current.id, "title": current.title},
            "completed": sorted(state.completed_steps),
            "steps": [
                {"id": s.id, "title": s.title, "rule": describe(s.completion)}
                for s in module.tutorial
                if s.id not in state.completed_steps
            ],
        }

    return {
        "language": language,
        "guidance": module.guidance,
        "location": {
            "id": here,
            "target": location.name.target if location else here,
            "native": location.name.native if location else here,
        },
        "player_tags": sorted(state.player_tags),
        "status_effects": sorted(state.status_effects),
        "objects": [_object_entry(o, here) for o in world.visible_objects(state)],
        "inventory": [_object_entry(o, here) for o in world.inventory(state)],
        "npcs": npcs,
        "exits": [
            {"to": e.to, "target": e.name.target, "native": e.name.native}
            for e in (location.exits if location else ())
        ],
        "tutorial": tutorial,
        "active_quests": [
            {"id": q.id, "description": q.description, "completion_hint": q.completion_hint}
            for q in module.quests if q.id in state.active_quests
        ],
        "available_quests": [
            {"id": q.id, "description": q.description, "source": q.source_id or q.source}
            for q in progression.available_quests(state, module)
        ],
    }
