"""Status effects: needs that escalate as turns pass.

Categories (cadence in turns / escalation ladder):
  hunger   15: hungry → very_hungry → starving
  bladder  18: needs_bathroom → urgent_bathroom → desperate_bathroom
  energy   20: tired → very_tired → exhausted
  hygiene  25: needs_shower → dirty → very_dirty

Each category remembers the turn it was last reset (0 if never). After every
processed turn the level a category should be at is
``min((turn - last_reset) // cadence, len(ladder))``; if that is above the
active level, the category's effect is replaced by the rung for that level.
Missed ticks jump straight to the right rung.

Clearing a category drops its effects and resets its timer. The turn
orchestrator clears a category when a consumed object relieves it
(``needs_effect``) or when a ``status`` mutation removes one of its effects.
"""

from __future__ import annotations

from typing import Literal

from lingo_life.models import REMOVED, FrozenModel, GameState

Severity = Literal["mild", "moderate", "urgent"]


class StatusEffect(FrozenModel):
    id: str
    label: str
    severity: Severity
    icon: str
    category: str


STATUS_EFFECTS: tuple[StatusEffect, ...] = (
    StatusEffect(id="hungry", label="Hungry", severity="mild", icon="🍔", category="hunger"),
    StatusEffect(id="very_hungry", label="Very Hungry", severity="moderate", icon="🍔", category="hunger"),
    StatusEffect(id="starving", label="Starving", severity="urgent", icon="🍔", category="hunger"),
    StatusEffect(id="needs_bathroom", label="Needs Bathroom", severity="mild", icon="🚻", category="bladder"),
    StatusEffect(id="urgent_bathroom", label="Urgent!", severity="moderate", icon="🚻", category="bladder"),
    StatusEffect(id="desperate_bathroom", label="Desperate!", severity="urgent", icon="🚻", category="bladder"),
    StatusEffect(id="tired", label="Tired", severity="mild", icon="⚡", category="energy"),
    StatusEffect(id="very_tired", label="Very Tired", severity="moderate", icon="⚡", category="energy"),
    StatusEffect(id="exhausted", label="Exhausted", severity="urgent", icon="⚡", category="energy"),
    StatusEffect(id="needs_shower", label="Needs Shower", severity="mild", icon="🧼", category="hygiene"),
    StatusEffect(id="dirty", label="Dirty", severity="moderate", icon="🧼", category="hygiene"),
    StatusEffect(id="very_dirty", label="Very Dirty", severity="urgent", icon="🧼", category="hygiene"),
)

# category -> (cadence in turns, escalation ladder)
LADDERS: dict[str, tuple[int, tuple[str, ...]]] = {
    "hunger": (15, ("hungry", "very_hungry", "starving")),
    "bladder": (18, ("needs_bathroom", "urgent_bathroom", "desperate_bathroom")),
    "energy": (20, ("tired", "very_tired", "exhausted")),
    "hygiene": (25, ("needs_shower", "dirty", "very_dirty")),
}

_BY_ID = {e.id: e for e in STATUS_EFFECTS}


def effect(effect_id: str) -> StatusEffect | None:
    return _BY_ID.get(effect_id)


def category_of(effect_id: str) -> str | None:
    for category, (_, ladder) in LADDERS.items():
        if effect_id in ladder:
            return category
    return None


def target_level(turns_since_reset: int, cadence: int, ladder_length: int) -> int:
    return min(turns_since_reset // cadence, ladder_length)


def tick_status(
    state: GameState,
    ladders: dict[str, tuple[int, tuple[str, ...]]] = LADDERS,
) -> GameState:
    """Escalate every category to the level implied by elapsed turns."""
    effects = set(state.status_effects)

    for category, (cadence, ladder) in ladders.items():
        since = state.turn - state.status_timers.get(category, 0)
        target = target_level(since, cadence, len(ladder))
        if target <= 0:
            continue
        current = next((i + 1 for i, e in enumerate(ladder) if e in effects), 0)
        if target > current:
            effects.difference_update(ladder)
            effects.add(ladder[target - 1])

    if effects == state.status_effects:
        return state
    return state.model_copy(update={"status_effects": frozenset(effects)})


def clear_category(
    state: GameState,
    category: str,
    ladders: dict[str, tuple[int, tuple[str, ...]]] = LADDERS,
) -> GameState:
    """Remove every effect of ``category`` and restart its timer at the current turn."""
    _, ladder = ladders.get(category, (0, ()))
    timers = dict(state.status_timers)
    timers[category] = state.turn
    return state.model_copy(update={
        "status_effects": state.status_effects - frozenset(ladder),
        "status_timers": timers,
    })


def relieved_categories(before: GameState, after: GameState) -> list[str]:
    """Categories whose need was met between two states of the same turn.

    A category counts as relieved when one of its effects disappeared from
    the active set, or an object with a positive ``needs_effect`` for it was
    consumed.
    """
    relieved: list[str] = []

    for effect_id in sorted(before.status_effects - after.status_effects):
        category = category_of(effect_id)
        if category and category not in relieved:
            relieved.append(category)

    previously_removed = {o.id for o in before.objects if o.location == REMOVED}
    for obj in after.objects:
        if obj.location != REMOVED or obj.id in previously_removed:
            continue
        for category, amount in obj.needs_effect.items():
            if amount > 0 and category in LADDERS and category not in relieved:
                relieved.append(category)

    return relieved
