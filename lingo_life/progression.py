"""Tutorial steps, quests, points and levels.

Tutorial steps are suggestions, never gates. After each turn every step whose
completion rule holds is marked done, even one the player reached out of
order. The "current step" pointer then walks the ``next_step_id`` chain past
completed steps.

Quests are inactive until their trigger rule holds and every prerequisite
quest is complete; prerequisites are absolute. ``auto_start`` quests then
activate by themselves; the others activate only when the narrator has an NPC
offer them. Completion is always the narrator's call and is never derived
from a rule.

Points: each level needs ``level * 150`` points; crossing the threshold may
raise several levels at once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from lingo_life.models import GameState, ModuleDefinition, Quest
from lingo_life.rules import evaluate

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 150


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------

def points_for_level(level: int) -> int:
    return level * POINTS_PER_LEVEL


def award_points(state: GameState, points: int) -> tuple[GameState, bool]:
    """Add points and apply any level-ups. Returns ``(state, leveled_up)``."""
    if points <= 0:
        return state, False
    total = state.points + points
    level = state.level
    while total >= points_for_level(level):
        level += 1
    leveled_up = level > state.level
    state = state.model_copy(update={
        "points": total,
        "total_points": state.total_points + points,
        "level": level,
    })
    return state, leveled_up


# ---------------------------------------------------------------------------
# Tutorial
# ---------------------------------------------------------------------------

def mark_steps(
    state: GameState, module: ModuleDefinition, step_ids: Iterable[str]
) -> tuple[GameState, list[str]]:
    """Mark narrator-reported steps as done, ignoring ids the module lacks."""
    done: list[str] = []
    for step_id in step_ids:
        if module.step(step_id) is None:
            logger.warning("Ignoring unknown step id %r", step_id)
            continue
        if step_id in state.completed_steps or step_id in done:
            continue
        done.append(step_id)
    if done:
        state = state.model_copy(update={"completed_steps": state.completed_steps | set(done)})
    return state, done


def check_steps(state: GameState, module: ModuleDefinition) -> tuple[GameState, list[str]]:
    """Mark every step whose completion rule now holds."""
    done = [
        step.id for step in module.tutorial
        if step.id not in state.completed_steps and evaluate(step.completion, state)
    ]
    if done:
        state = state.model_copy(update={"completed_steps": state.completed_steps | set(done)})
    return state, done


def advance_step(state: GameState, module: ModuleDefinition) -> GameState:
    """Move the suggested step past every completed step in its chain."""
    step_id = state.current_step
    seen: set[str] = set()
    while step_id is not None and step_id in state.completed_steps and step_id not in seen:
        seen.add(step_id)
        step = module.step(step_id)
        step_id = step.next_step_id if step is not None else None
    if step_id == state.current_step:
        return state
    return state.model_copy(update={"current_step": step_id})


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

def quest_eligible(quest: Quest, state: GameState) -> bool:
    """Not yet started or finished, prerequisites met, trigger rule true."""
    if quest.id in state.active_quests or quest.id in state.completed_quests:
        return False
    if not all(p in state.completed_quests for p in quest.prereqs):
        return False
    return evaluate(quest.trigger, state)


def available_quests(state: GameState, module: ModuleDefinition) -> list[Quest]:
    """Eligible quests waiting for an NPC to offer them."""
    return [q for q in module.quests if not q.auto_start and quest_eligible(q, state)]


def activate_quests(state: GameState, module: ModuleDefinition) -> tuple[GameState, list[str]]:
    """Start every eligible ``auto_start`` quest."""
    started = [q.id for q in module.quests if q.auto_start and quest_eligible(q, state)]
    if started:
        state = state.model_copy(update={"active_quests": state.active_quests | set(started)})
    return state, started


def start_quests(
    state: GameState, module: ModuleDefinition, quest_ids: Iterable[str]
) -> tuple[GameState, list[str]]:
    """Start quests the narrator reported as offered, if they are eligible."""
    started: list[str] = []
    for quest_id in quest_ids:
        quest = module.quest(quest_id)
        if quest is None:
            logger.warning("Ignoring unknown quest id %r", quest_id)
            continue
        if quest_id in state.active_quests or quest_id in state.completed_quests:
            continue
        if not quest_eligible(quest, state):
            logger.warning("Ignoring start of ineligible quest %r", quest_id)
            continue
        state = state.model_copy(update={"active_quests": state.active_quests | {quest_id}})
        started.append(quest_id)
    return state, started


def complete_quests(
    state: GameState, module: ModuleDefinition, quest_ids: Iterable[str]
) -> tuple[GameState, list[str], list[str], int, bool]:
    """Complete active quests and pay out their rewards.

    Returns ``(state, completed_ids, badge_names, points, leveled_up)``.
    """
    completed: list[str] = []
    badges: list[str] = []
    points = 0
    leveled_up = False

    for quest_id in quest_ids:
        if quest_id not in state.active_quests:
            logger.warning("Ignoring completion of non-active quest %r", quest_id)
            continue
        quest = module.quest(quest_id)
        if quest is None:
            logger.warning("Ignoring completion of unknown quest %r", quest_id)
            continue

        state = state.model_copy(update={
            "active_quests": state.active_quests - {quest_id},
            "completed_quests": state.completed_quests | {quest_id},
        })
        state, up = award_points(state, quest.reward.points)
        points += max(quest.reward.points, 0)
        leveled_up = leveled_up or up
        if quest.reward.badge is not None and quest.reward.badge.name not in state.badges:
            state = state.model_copy(update={"badges": state.badges + (quest.reward.badge.name,)})
            badges.append(quest.reward.badge.name)
        completed.append(quest_id)

    return state, completed, badges, points, leveled_up
