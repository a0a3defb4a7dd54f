"""Turn orchestrator: runs one player turn end-to-end.

Turn flow:
  1. Understand: the utterance goes to the "understand" collaborator.
     An invalid action ends the turn here with the state unchanged.
  2. Validate the parsed mutations against the world (exits, object and NPC
     ids) and apply the survivors; the turn counter advances.
  3. Score: points per applied mutation (doubled for compound commands) and
     vocabulary credit for target-language words in the utterance.
  4. Start auto-start quests whose trigger and prerequisites now hold.
  5. Narrate: the "narrate" collaborator describes the applied turn.
     Its reported steps, NPC reply and follow-up mutations are applied.
  6. Progress: check tutorial rules, complete quests the narrator reported,
     start newly eligible quests and move the suggested step forward.
  7. Status: relieve needs met this turn, then escalate the timers.

Both collaborator calls happen before anything is returned, and the input
state is never modified, so a failing call (``LLMError``, including
``CollaboratorError``) leaves the caller's state exactly as it was.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

from lingo_life import collaborators, progression, status, vocabulary, world
from lingo_life.config import default_config
from lingo_life.llm import LLM
from lingo_life.models import (
    ChatEntry,
    CreateMutation,
    GameState,
    GoMutation,
    ModuleDefinition,
    MoveMutation,
    Mutation,
    Narration,
    NpcMoodMutation,
    RemoveMutation,
    TagMutation,
    TranscriptEntry,
    TurnResult,
    Understanding,
)
from lingo_life.mutations import apply_mutations
from lingo_life.registry import ModuleRegistry
from lingo_life.storage import Storage

logger = logging.getLogger(__name__)

CHAT_HISTORY_LIMIT = 10


async def run_turn(
    *,
    state: GameState,
    utterance: str,
    llm: LLM,
    registry: ModuleRegistry,
    config: dict[str, Any] | None = None,
    now: float | None = None,
) -> TurnResult:
    """Process one utterance against ``state`` and return the outcome."""
    config = config or default_config()
    language = config["language"]
    now = time.time() if now is None else now
    module = registry.get(state.module)
    mood_before = _moods(state)

    # 1. Understand
    understanding = await collaborators.understand(llm, state, module, utterance, language)
    if not understanding.valid:
        logger.info("turn rejected: %s", understanding.invalid_reason)
        return TurnResult(
            state=state,
            understood=understanding.understood,
            grammar=understanding.grammar,
            target_model=understanding.target_model,
            valid=False,
            invalid_reason=understanding.invalid_reason,
            message=understanding.invalid_reason or "I didn't understand that.",
        )

    # 2. Apply
    applied = validate_mutations(state, module, understanding.mutations)
    new = apply_mutations(state, applied, module)
    new = new.model_copy(update={"turn": state.turn + 1})

    # 3. Score
    points_awarded = 0
    leveled_up = False
    if applied:
        base = len(applied) * config["points_per_mutation"]
        new, leveled_up = progression.award_points(new, base * (2 if len(applied) > 1 else 1))
        points_awarded = new.points - state.points

    new = _record_words(new, utterance, understanding, config["vocab_grammar_threshold"], now)

    # 4. Auto-start quests
    new, quests_started = progression.activate_quests(new, module)

    # 5. Narrate
    narration = await collaborators.narrate(
        llm, new, module, utterance, understanding, applied, language,
    )
    new, steps_completed = progression.mark_steps(new, module, narration.steps_completed)
    new = _apply_npc_response(new, narration, utterance)
    if narration.mutations:
        new = apply_mutations(new, narration.mutations, module)

    # 6. Progress
    new, checked = progression.check_steps(new, module)
    steps_completed += checked

    new, quests_completed, badges, quest_points, quest_level_up = progression.complete_quests(
        new, module, narration.quests_completed,
    )
    points_awarded += quest_points
    leveled_up = leveled_up or quest_level_up
    new = _annotate_chat(new, module, narration, quests_completed, mood_before)

    new, started = progression.activate_quests(new, module)
    quests_started += started
    new, started = progression.start_quests(new, module, narration.quests_started)
    quests_started += started

    new, checked = progression.check_steps(new, module)
    steps_completed += checked
    new = progression.advance_step(new, module)

    # 7. Status
    for category in status.relieved_categories(state, new):
        new = status.clear_category(new, category)
    new = status.tick_status(new)

    if narration.npc_response and narration.npc_response.target:
        for word_id in vocabulary.extract_words(narration.npc_response.target, new.vocabulary):
            new = new.model_copy(update={
                "vocabulary": vocabulary.record_exposure(new.vocabulary, word_id),
            })

    logger.info(
        "turn %d: %d mutation(s), +%d points, steps=%s quests=%s/%s",
        new.turn, len(applied), points_awarded, steps_completed, quests_started, quests_completed,
    )
    return TurnResult(
        state=new,
        understood=understanding.understood,
        grammar=understanding.grammar,
        target_model=understanding.target_model,
        valid=True,
        mutations=applied,
        message=narration.message,
        npc_response=narration.npc_response,
        points_awarded=points_awarded,
        leveled_up=leveled_up,
        steps_completed=tuple(steps_completed),
        quests_started=tuple(quests_started),
        quests_completed=tuple(quests_completed),
        badges_earned=tuple(badges),
    )


async def play_turn(
    *,
    storage: Storage,
    profile: str,
    module_name: str,
    utterance: str,
    llm: LLM,
    registry: ModuleRegistry,
    config: dict[str, Any] | None = None,
    now: float | None = None,
) -> TurnResult:
    """Load (or start) a save, run one turn, and persist the outcome.

    Nothing is written when the turn raises.
    """
    state = storage.load_game(profile, module_name)
    if state is None:
        state = world.new_game(registry.get(module_name), storage.get_vocabulary(profile))

    result = await run_turn(
        state=state, utterance=utterance, llm=llm,
        registry=registry, config=config, now=now,
    )

    storage.save_game(profile, result.state)
    storage.append_transcript(profile, module_name, _transcript(result, utterance))
    return result


# ---------------------------------------------------------------------------
# Mutation validation
# ---------------------------------------------------------------------------

def validate_mutations(
    state: GameState, module: ModuleDefinition, mutations: Iterable[Mutation]
) -> tuple[Mutation, ...]:
    """Drop parsed mutations that cannot apply to this world.

    ``go`` must follow an exit from wherever the player is at that point of
    the sequence; object and NPC references must exist; ``create`` must not
    reuse an id. Everything else passes through.
    """
    location = state.current_location
    known_ids = {o.id for o in state.objects}
    kept: list[Mutation] = []

    for mutation in mutations:
        if isinstance(mutation, GoMutation):
            current = module.locations.get(location)
            exits = {e.to for e in current.exits} if current else set()
            if mutation.location_id not in exits:
                logger.warning("Dropping go to %r: no exit from %r", mutation.location_id, location)
                continue
            location = mutation.location_id

        elif isinstance(mutation, (MoveMutation, TagMutation, RemoveMutation)):
            if mutation.object_id not in known_ids:
                logger.warning("Dropping %s: unknown object %r", mutation.type, mutation.object_id)
                continue

        elif isinstance(mutation, CreateMutation):
            if mutation.obj.id in known_ids:
                logger.warning("Dropping create: object %r already exists", mutation.obj.id)
                continue
            known_ids.add(mutation.obj.id)

        elif isinstance(mutation, NpcMoodMutation):
            if mutation.npc_id not in state.npcs:
                logger.warning("Dropping npcMood: unknown NPC %r", mutation.npc_id)
                continue

        kept.append(mutation)

    return tuple(kept)


# ---------------------------------------------------------------------------
# Turn helpers
# ---------------------------------------------------------------------------

def _record_words(
    state: GameState,
    utterance: str,
    understanding: Understanding,
    threshold: int,
    now: float,
) -> GameState:
    """Credit words the player typed; count the model sentence as exposure."""
    if not understanding.understood:
        return state
    vocab = state.vocabulary
    correct = understanding.grammar.score >= threshold
    used = vocabulary.extract_words(utterance, vocab)
    for word_id in used:
        vocab = vocabulary.record_use(vocab, word_id, correct, now)
    if understanding.target_model:
        for word_id in vocabulary.extract_words(understanding.target_model, vocab):
            if word_id not in used:
                vocab = vocabulary.record_exposure(vocab, word_id)
    return state.model_copy(update={"vocabulary": vocab})


def _moods(state: GameState) -> dict[str, str]:
    return {npc_id: npc.mood for npc_id, npc in state.npcs.items()}


def _apply_npc_response(state: GameState, narration: Narration, utterance: str) -> GameState:
    response = narration.npc_response
    if response is None:
        return state
    npc = state.npcs.get(response.npc_id)
    if npc is None:
        logger.warning("Ignoring response from unknown NPC %r", response.npc_id)
        return state

    reply = response.target or response.native
    entry = ChatEntry(
        player_input=utterance,
        npc_response=reply,
        npc_action=response.action_text or "",
    )
    npcs = dict(state.npcs)
    npcs[response.npc_id] = npc.model_copy(update={
        "last_response": reply,
        "wants_item": response.wants_item or npc.wants_item,
        "chat_history": (npc.chat_history + (entry,))[-CHAT_HISTORY_LIMIT:],
    })
    return state.model_copy(update={"npcs": npcs})


def _annotate_chat(
    state: GameState,
    module: ModuleDefinition,
    narration: Narration,
    quests_completed: list[str],
    mood_before: dict[str, str],
) -> GameState:
    """Note quest completions and mood changes on the NPC's latest chat entry."""
    response = narration.npc_response
    if response is None or response.npc_id not in state.npcs:
        return state
    npc = state.npcs[response.npc_id]
    if not npc.chat_history:
        return state

    update: dict[str, str] = {}
    for quest_id in quests_completed:
        quest = module.quest(quest_id)
        if quest is not None and quest.source_id == response.npc_id:
            update["quest_completed"] = quest.title.native
            break
    if npc.mood != mood_before.get(response.npc_id):
        update["mood_after"] = npc.mood
    if not update:
        return state

    last = npc.chat_history[-1].model_copy(update=update)
    npcs = dict(state.npcs)
    npcs[response.npc_id] = npc.model_copy(update={
        "chat_history": npc.chat_history[:-1] + (last,),
    })
    return state.model_copy(update={"npcs": npcs})


def _transcript(result: TurnResult, utterance: str) -> list[TranscriptEntry]:
    turn = result.state.turn
    entries = [TranscriptEntry(turn=turn, role="player", speaker="player", content=utterance)]
    if not result.valid:
        entries.append(TranscriptEntry(turn=turn, role="system", speaker="system", content=result.message))
        return entries
    if result.message:
        entries.append(TranscriptEntry(turn=turn, role="narrator", speaker="narrator", content=result.message))
    response = result.npc_response
    if response is not None and (response.target or response.native):
        entries.append(TranscriptEntry(
            turn=turn, role="npc", speaker=response.npc_id,
            content=response.target or response.native,
        ))
    return entries
