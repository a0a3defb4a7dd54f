"""Mutation applicator: the single choke point for world changes.

    apply_mutations(state, mutations) -> state'

Mutations run strictly in list order and each one sees the result of the
ones before it, so ``[go kitchen, tag refrigerator open]`` works even though
the refrigerator was out of reach when the batch started.

The collaborator that produced the batch is a best-effort interpreter of
free text, so stale or nonsensical references are expected: such a mutation
is logged and skipped, and the rest of the batch still applies. Nothing in
here raises for a well-formed batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from lingo_life.models import (
    REMOVED,
    SENTINEL_LOCATIONS,
    CreateMutation,
    GameState,
    GoMutation,
    ModuleDefinition,
    MoveMutation,
    Mutation,
    NpcMoodMutation,
    PlayerTagMutation,
    RemoveMutation,
    StatusMutation,
    TagMutation,
    WorldObject,
)

logger = logging.getLogger(__name__)


def apply_mutations(
    state: GameState,
    mutations: Iterable[Mutation],
    module: ModuleDefinition | None = None,
) -> GameState:
    """Apply ``mutations`` in order and return the resulting state.

    When ``module`` is given, ``go`` and ``move`` targets that name no known
    location are skipped as well.
    """
    for mutation in mutations:
        state = apply_mutation(state, mutation, module)
    return state


def apply_mutation(
    state: GameState,
    mutation: Mutation,
    module: ModuleDefinition | None = None,
) -> GameState:
    if isinstance(mutation, GoMutation):
        return _go(state, mutation.location_id, module)

    if isinstance(mutation, MoveMutation):
        return _move(state, mutation.object_id, mutation.to, module)

    if isinstance(mutation, RemoveMutation):
        return _move(state, mutation.object_id, REMOVED, module)

    if isinstance(mutation, TagMutation):
        obj = state.find_object(mutation.object_id)
        if obj is None:
            logger.warning("Skipping tag: unknown object %r", mutation.object_id)
            return state
        tags = _edit_set(obj.tags, mutation.add, mutation.remove)
        if tags == obj.tags:
            return state
        return _replace_object(state, obj.model_copy(update={"tags": tags}))

    if isinstance(mutation, PlayerTagMutation):
        tags = _edit_set(state.player_tags, mutation.add, mutation.remove)
        if tags == state.player_tags:
            return state
        return state.model_copy(update={"player_tags": tags})

    if isinstance(mutation, StatusMutation):
        effects = _edit_set(state.status_effects, mutation.add, mutation.remove)
        if effects == state.status_effects:
            return state
        return state.model_copy(update={"status_effects": effects})

    if isinstance(mutation, CreateMutation):
        return _create(state, mutation.obj, module)

    if isinstance(mutation, NpcMoodMutation):
        npc = state.npcs.get(mutation.npc_id)
        if npc is None:
            logger.warning("Skipping npcMood: unknown NPC %r", mutation.npc_id)
            return state
        npcs = dict(state.npcs)
        npcs[mutation.npc_id] = npc.model_copy(update={"mood": mutation.mood})
        return state.model_copy(update={"npcs": npcs})

    logger.warning("Skipping unsupported mutation %r", mutation)
    return state


# ---------------------------------------------------------------------------
# Per-kind helpers
# ---------------------------------------------------------------------------

def _go(state: GameState, location_id: str, module: ModuleDefinition | None) -> GameState:
    if location_id in SENTINEL_LOCATIONS or state.find_object(location_id) is not None:
        logger.warning("Skipping go: %r is not a location", location_id)
        return state
    if module is not None and location_id not in module.locations:
        logger.warning("Skipping go: unknown location %r", location_id)
        return state
    return state.model_copy(update={
        "current_location": location_id,
        "visited_locations": state.visited_locations | {location_id},
    })


def _move(
    state: GameState, object_id: str, to: str, module: ModuleDefinition | None
) -> GameState:
    obj = state.find_object(object_id)
    if obj is None:
        logger.warning("Skipping move: unknown object %r", object_id)
        return state
    if obj.location == to:
        return state
    if not _valid_destination(state, to, module, moving=object_id):
        return state
    return _replace_object(state, obj.model_copy(update={"location": to}))


def _create(
    state: GameState, obj: WorldObject, module: ModuleDefinition | None
) -> GameState:
    if obj.id in SENTINEL_LOCATIONS or state.find_object(obj.id) is not None:
        logger.warning("Skipping create: id %r already in use", obj.id)
        return state
    if module is not None and obj.id in module.locations:
        logger.warning("Skipping create: id %r names a location", obj.id)
        return state
    if not _valid_destination(state, obj.location, module, moving=None):
        return state
    return state.model_copy(update={"objects": state.objects + (obj,)})


def _valid_destination(
    state: GameState,
    to: str,
    module: ModuleDefinition | None,
    moving: str | None,
) -> bool:
    if to in SENTINEL_LOCATIONS:
        return True

    container = state.find_object(to)
    if container is not None:
        if container.location == REMOVED:
            logger.warning("Skipping placement into removed container %r", to)
            return False
        if moving is not None and _contained_in(state, to, moving):
            logger.warning("Skipping move of %r into %r: containment cycle", moving, to)
            return False
        return True

    if module is not None and to not in module.locations:
        logger.warning("Skipping placement: unknown destination %r", to)
        return False
    return True


def _contained_in(state: GameState, object_id: str, ancestor: str) -> bool:
    """True if ``object_id`` is ``ancestor`` or sits somewhere inside it."""
    seen: set[str] = set()
    current: str | None = object_id
    while current is not None and current not in seen:
        if current == ancestor:
            return True
        seen.add(current)
        obj = state.find_object(current)
        current = obj.location if obj is not None else None
    return False


def _edit_set(
    current: frozenset[str], add: Iterable[str], remove: Iterable[str]
) -> frozenset[str]:
    # add first, then remove: a tag named in both ends up absent
    return (current | frozenset(add)) - frozenset(remove)


def _replace_object(state: GameState, updated: WorldObject) -> GameState:
    objects = tuple(updated if o.id == updated.id else o for o in state.objects)
    return state.model_copy(update={"objects": objects})
