"""Read-only projection of a game state for display layers.

``build_view`` gathers what a UI needs to draw a scene. Labels follow
vocabulary progress: a word the player has not learned yet shows both
languages, afterwards only the target language.
"""

from __future__ import annotations

from typing import Literal

from lingo_life import status, vocabulary, world
from lingo_life.models import (
    BilingualText,
    FrozenModel,
    GameState,
    ModuleDefinition,
    Stage,
    WorldObject,
)
from lingo_life.progression import points_for_level


class ObjectView(FrozenModel):
    id: str
    label: str
    name: BilingualText
    tags: list[str]
    stage: Stage | None = None
    container: str | None = None


class NpcView(FrozenModel):
    id: str
    name: BilingualText
    mood: str
    is_pet: bool = False
    wants_item: str | None = None
    last_response: str | None = None


class ExitView(FrozenModel):
    to: str
    name: BilingualText
    visited: bool


class StepView(FrozenModel):
    id: str
    title: str
    hint: str = ""
    done: bool
    current: bool


class QuestView(FrozenModel):
    id: str
    title: BilingualText
    description: str
    hint: str = ""
    status: Literal["active", "completed"]


class EffectView(FrozenModel):
    id: str
    label: str
    severity: str
    icon: str


class SceneView(FrozenModel):
    module: str
    turn: int
    location_id: str
    location_name: BilingualText | None
    player_tags: list[str]
    objects: list[ObjectView]
    inventory: list[ObjectView]
    npcs: list[NpcView]
    exits: list[ExitView]
    tutorial: list[StepView]
    quests: list[QuestView]
    status_effects: list[EffectView]
    vocabulary: dict[str, Stage]
    vocabulary_summary: dict[str, int]
    points: int
    level: int
    next_level_points: int
    badges: list[str]


def _object_view(obj: WorldObject, state: GameState) -> ObjectView:
    word = state.vocabulary.get(vocabulary.word_id_for(obj.name.native))
    return ObjectView(
        id=obj.id,
        label=vocabulary.object_label(obj, state.vocabulary),
        name=obj.name,
        tags=sorted(obj.tags),
        stage=word.stage if word else None,
        container=obj.location if obj.location != state.current_location else None,
    )


def build_view(state: GameState, module: ModuleDefinition) -> SceneView:
    location = module.locations.get(state.current_location)

    npcs = []
    for npc_id, npc in world.npcs_here(state).items():
        definition = module.npc(npc_id)
        if definition is None:
            continue
        npcs.append(NpcView(
            id=npc_id,
            name=definition.name,
            mood=npc.mood,
            is_pet=definition.is_pet,
            wants_item=npc.wants_item,
            last_response=npc.last_response,
        ))

    quests = []
    for quest in module.quests:
        if quest.id in state.active_quests:
            quest_status = "active"
        elif quest.id in state.completed_quests:
            quest_status = "completed"
        else:
            continue
        quests.append(QuestView(
            id=quest.id, title=quest.title, description=quest.description,
            hint=quest.hint, status=quest_status,
        ))

    effects = []
    for effect_id in sorted(state.status_effects):
        definition = status.effect(effect_id)
        if definition is None:
            effects.append(EffectView(id=effect_id, label=effect_id, severity="mild", icon=""))
        else:
            effects.append(EffectView(
                id=definition.id, label=definition.label,
                severity=definition.severity, icon=definition.icon,
            ))

    return SceneView(
        module=state.module,
        turn=state.turn,
        location_id=state.current_location,
        location_name=location.name if location else None,
        player_tags=sorted(state.player_tags),
        objects=[_object_view(o, state) for o in world.visible_objects(state)],
        inventory=[_object_view(o, state) for o in world.inventory(state)],
        npcs=npcs,
        exits=[
            ExitView(to=e.to, name=e.name, visited=e.to in state.visited_locations)
            for e in (location.exits if location else ())
        ],
        tutorial=[
            StepView(
                id=s.id, title=s.title, hint=s.hint,
                done=s.id in state.completed_steps,
                current=s.id == state.current_step,
            )
            for s in module.tutorial
        ],
        quests=quests,
        status_effects=effects,
        vocabulary={w.word_id: w.stage for w in state.vocabulary.values()},
        vocabulary_summary=dict(vocabulary.familiarity_summary(state.vocabulary)),
        points=state.points,
        level=state.level,
        next_level_points=points_for_level(state.level),
        badges=list(state.badges),
    )
