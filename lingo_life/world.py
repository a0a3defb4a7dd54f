"""World construction and read accessors.

Nothing here changes a state; every change goes through
``lingo_life.mutations.apply_mutations``.
"""

from __future__ import annotations

from lingo_life.models import (
    INVENTORY,
    REMOVED,
    GameState,
    ModuleDefinition,
    NpcState,
    WordFamiliarity,
    WorldObject,
)
from lingo_life.vocabulary import new_vocabulary


def new_game(
    module: ModuleDefinition,
    previous_vocabulary: dict[str, WordFamiliarity] | None = None,
) -> GameState:
    """Create the opening state of a session from a module definition.

    Progress on words the player already met in another module carries over
    when ``previous_vocabulary`` is given.
    """
    return GameState(
        module=module.name,
        current_location=module.start_location_id,
        visited_locations=frozenset({module.start_location_id}),
        player_tags=module.start_player_tags,
        objects=module.objects,
        npcs={npc.id: NpcState(location=npc.location) for npc in module.npcs},
        current_step=module.first_step_id,
        vocabulary=new_vocabulary(module.vocabulary, previous_vocabulary),
    )


def current_location(state: GameState) -> str:
    return state.current_location


def player_tags(state: GameState) -> frozenset[str]:
    return state.player_tags


def turn(state: GameState) -> int:
    return state.turn


def objects_at(state: GameState, location: str) -> list[WorldObject]:
    """Objects whose ``location`` is exactly ``location`` (a room, container or inventory)."""
    if location == REMOVED:
        return []
    return [o for o in state.objects if o.location == location]


def inventory(state: GameState) -> list[WorldObject]:
    return objects_at(state, INVENTORY)


def visible_objects(state: GameState) -> list[WorldObject]:
    """Objects in the current room plus the contents of open containers there."""
    here = objects_at(state, state.current_location)
    open_containers = {o.id for o in here if "open" in o.tags}
    inside = [
        o for o in state.objects
        if o.location in open_containers
    ]
    return here + inside


def npcs_here(state: GameState) -> dict[str, NpcState]:
    return {
        npc_id: npc for npc_id, npc in state.npcs.items()
        if npc.location == state.current_location
    }


def removed_objects(state: GameState) -> list[WorldObject]:
    return [o for o in state.objects if o.location == REMOVED]
