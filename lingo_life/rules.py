"""Check-rule evaluator.

Tutorial steps and quest triggers carry declarative ``CheckRule`` trees
rather than code, so modules can be stored as JSON. ``evaluate`` is the only
interpreter of those trees: pure, and ``False`` for anything it cannot find.
"""

from __future__ import annotations

from lingo_life.models import (
    AndRule,
    CheckRule,
    CompletedQuestRule,
    CompletedStepRule,
    GameState,
    LocationRule,
    ObjectLocationRule,
    ObjectTagRule,
    PlayerTagRule,
)


def evaluate(rule: CheckRule, state: GameState) -> bool:
    if isinstance(rule, LocationRule):
        return state.current_location == rule.location_id

    if isinstance(rule, PlayerTagRule):
        return (rule.tag in state.player_tags) == rule.has

    if isinstance(rule, ObjectLocationRule):
        obj = state.find_object(rule.object_id)
        return obj is not None and obj.location == rule.location

    if isinstance(rule, ObjectTagRule):
        obj = state.find_object(rule.object_id)
        return obj is not None and (rule.tag in obj.tags) == rule.has

    if isinstance(rule, CompletedStepRule):
        return rule.step_id in state.completed_steps

    if isinstance(rule, CompletedQuestRule):
        return rule.quest_id in state.completed_quests

    if isinstance(rule, AndRule):
        return all(evaluate(r, state) for r in rule.rules)

    return False


def describe(rule: CheckRule) -> str:
    """Short human-readable form, used when listing steps to the narrator."""
    if isinstance(rule, LocationRule):
        return f"player is in {rule.location_id}"
    if isinstance(rule, PlayerTagRule):
        return f"player {'is' if rule.has else 'is not'} {rule.tag}"
    if isinstance(rule, ObjectLocationRule):
        return f"{rule.object_id} is in {rule.location}"
    if isinstance(rule, ObjectTagRule):
        return f"{rule.object_id} {'is' if rule.has else 'is not'} {rule.tag}"
    if isinstance(rule, CompletedStepRule):
        return f"step {rule.step_id} done"
    if isinstance(rule, CompletedQuestRule):
        return f"quest {rule.quest_id} done"
    if isinstance(rule, AndRule):
        return " and ".join(describe(r) for r in rule.rules)
    return ""
