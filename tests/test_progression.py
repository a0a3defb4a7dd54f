"""Tests for lingo_life.progression: points, tutorial steps, quests."""

from lingo_life import progression
from lingo_life.models import GameState, ModuleDefinition


def _in_kitchen(state: GameState) -> GameState:
    return state.model_copy(update={
        "current_location": "kitchen",
        "visited_locations": state.visited_locations | {"kitchen"},
    })


class TestPoints:
    def test_threshold_scales_with_level(self) -> None:
        assert progression.points_for_level(1) == 150
        assert progression.points_for_level(3) == 450

    def test_award_below_threshold(self, state: GameState) -> None:
        new, up = progression.award_points(state, 100)
        assert (new.points, new.level, new.total_points, up) == (100, 1, 100, False)

    def test_level_up(self, state: GameState) -> None:
        new, up = progression.award_points(state, 160)
        assert new.level == 2
        assert up is True

    def test_several_levels_at_once(self, state: GameState) -> None:
        new, up = progression.award_points(state, 500)
        assert new.level == 4
        assert up is True

    def test_non_positive_is_noop(self, state: GameState) -> None:
        assert progression.award_points(state, 0) == (state, False)


class TestTutorial:
    def test_check_steps_marks_rule_matches(self, state: GameState, home: ModuleDefinition) -> None:
        state = state.model_copy(update={"player_tags": frozenset({"standing"})})
        new, done = progression.check_steps(state, home)
        assert done == ["wake_up"]
        assert "wake_up" in new.completed_steps

    def test_out_of_order_steps_count(self, state: GameState, home: ModuleDefinition) -> None:
        new, done = progression.check_steps(_in_kitchen(state), home)
        assert done == ["go_to_kitchen"]

    def test_mark_steps_ignores_unknown_ids(self, state: GameState, home: ModuleDefinition) -> None:
        new, done = progression.mark_steps(state, home, ["wake_up", "fly_away", "wake_up"])
        assert done == ["wake_up"]
        assert new.completed_steps == frozenset({"wake_up"})

    def test_advance_skips_completed_chain(self, state: GameState, home: ModuleDefinition) -> None:
        state = state.model_copy(update={
            "completed_steps": frozenset({"wake_up", "turn_off_alarm", "take_shower"}),
        })
        assert progression.advance_step(state, home).current_step == "go_to_bathroom"

    def test_advance_past_last_step(self, state: GameState, home: ModuleDefinition) -> None:
        state = state.model_copy(update={
            "current_step": "make_breakfast",
            "completed_steps": frozenset({"make_breakfast"}),
        })
        assert progression.advance_step(state, home).current_step is None

    def test_advance_noop_when_current_not_done(self, state: GameState, home: ModuleDefinition) -> None:
        assert progression.advance_step(state, home) is state


class TestQuests:
    def test_auto_start_quest_activates_on_trigger(self, state: GameState, home: ModuleDefinition) -> None:
        state = state.model_copy(update={"current_location": "living_room"})
        new, started = progression.activate_quests(state, home)
        assert started == ["feed_the_cat"]
        assert new.active_quests == frozenset({"feed_the_cat"})

    def test_offered_quest_waits_for_narrator(self, state: GameState, home: ModuleDefinition) -> None:
        kitchen = _in_kitchen(state)
        new, started = progression.activate_quests(kitchen, home)
        assert started == []
        assert [q.id for q in progression.available_quests(kitchen, home)] == ["carlos_coffee"]

        new, started = progression.start_quests(kitchen, home, ["carlos_coffee"])
        assert started == ["carlos_coffee"]
        assert progression.available_quests(new, home) == []

    def test_start_requires_trigger(self, state: GameState, home: ModuleDefinition) -> None:
        new, started = progression.start_quests(state, home, ["carlos_coffee"])
        assert started == []
        assert new is state

    def test_prereqs_gate_quest(self, state: GameState, home: ModuleDefinition) -> None:
        ready = _in_kitchen(state).model_copy(update={"completed_steps": frozenset({"make_breakfast"})})
        morning = home.quest("morning_person")
        assert not progression.quest_eligible(morning, ready)

        ready = ready.model_copy(update={"completed_quests": frozenset({"carlos_coffee"})})
        assert progression.quest_eligible(morning, ready)
        new, started = progression.activate_quests(ready, home)
        assert started == ["morning_person"]

    def test_complete_pays_reward_once(self, state: GameState, home: ModuleDefinition) -> None:
        state = state.model_copy(update={"active_quests": frozenset({"carlos_coffee"})})
        new, completed, badges, points, up = progression.complete_quests(
            state, home, ["carlos_coffee", "carlos_coffee"],
        )
        assert completed == ["carlos_coffee"]
        assert badges == ["Barista"]
        assert points == 50
        assert up is False
        assert new.points == 50
        assert new.completed_quests == frozenset({"carlos_coffee"})
        assert new.active_quests == frozenset()
        assert new.badges == ("Barista",)

    def test_complete_ignores_inactive(self, state: GameState, home: ModuleDefinition) -> None:
        new, completed, badges, points, up = progression.complete_quests(state, home, ["feed_the_cat"])
        assert (completed, badges, points, up) == ([], [], 0, False)
        assert new is state

    def test_completed_quest_never_reactivates(self, state: GameState, home: ModuleDefinition) -> None:
        state = state.model_copy(update={
            "current_location": "living_room",
            "completed_quests": frozenset({"feed_the_cat"}),
        })
        _, started = progression.activate_quests(state, home)
        assert started == []
