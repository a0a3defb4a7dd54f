"""Lingo Life: terminal player. Type sentences in the target language.

Commands:
  :status   show the scene, quests and vocabulary progress
  :review   run through due flashcards
  :quit     leave (progress is saved after every turn)
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from lingo_life import vocabulary
from lingo_life.config import apply_env, get_config
from lingo_life.llm import EchoLLM, LLMError, llm_from_config
from lingo_life.pipeline import play_turn
from lingo_life.registry import UnknownModuleError, load_registry
from lingo_life.storage import Storage
from lingo_life.views import build_view
from lingo_life.world import new_game

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

logger = logging.getLogger("lingo_life")

QUALITIES = {"1": 1, "2": 2, "3": 3, "4": 4}


def print_status(storage, registry, profile, module_name):
    state = storage.load_game(profile, module_name)
    if state is None:
        state = new_game(registry.get(module_name), storage.get_vocabulary(profile))
    view = build_view(state, registry.get(module_name))

    name = view.location_name.target if view.location_name else view.location_id
    print(f"\n== {name} (turn {view.turn}, level {view.level}, "
          f"{view.points}/{view.next_level_points} pts) ==")
    if view.objects:
        print("You see: " + ", ".join(o.label for o in view.objects))
    if view.inventory:
        print("Carrying: " + ", ".join(o.label for o in view.inventory))
    for npc in view.npcs:
        print(f"{npc.name.target} is here ({npc.mood}).")
    if view.exits:
        print("Exits: " + ", ".join(e.name.target for e in view.exits))
    step = next((s for s in view.tutorial if s.current), None)
    if step is not None:
        print(f"Next: {step.title}" + (f" (hint: {step.hint})" if step.hint else ""))
    for quest in view.quests:
        if quest.status == "active":
            print(f"Quest: {quest.title.target} / {quest.title.native}")
    if view.status_effects:
        print("Feeling: " + ", ".join(f"{e.icon} {e.label}" for e in view.status_effects))
    summary = view.vocabulary_summary
    print(f"Words: {summary['new']} new, {summary['learning']} learning, {summary['known']} known")
    if view.badges:
        print("Badges: " + ", ".join(view.badges))


def review(storage, profile, module_name):
    state = storage.load_game(profile, module_name)
    if state is None:
        print("Nothing to review yet.")
        return
    now = time.time()
    due = vocabulary.due_words(state.vocabulary, now)
    if not due:
        print("No words due.")
        return

    vocab = state.vocabulary
    for word in due:
        answer = input(f"\n{word.native_form}?  (press enter to reveal) ")
        print(f"  -> {word.target_forms[0]}" + ("  ✓" if answer.strip().lower() in
                                               [f.lower() for f in word.target_forms] else ""))
        grade = input("  1 again / 2 hard / 3 good / 4 easy, q to stop: ").strip()
        if grade == "q":
            break
        vocab = vocabulary.review_word(vocab, word.word_id, QUALITIES.get(grade, 3), now)

    storage.save_game(profile, state.model_copy(update={"vocabulary": vocab}))
    stats = vocabulary.flashcard_stats(vocab, now)
    print(f"Done. {stats['due']} still due, {stats['known']} known.")


async def play(args, config):
    registry = load_registry()
    module_name = args.module or config["start_module"]
    if module_name not in registry:
        raise UnknownModuleError(module_name)

    storage = Storage(args.data_dir)
    if args.new:
        storage.delete_game(args.profile, module_name)

    llm = EchoLLM() if args.echo else llm_from_config(config)
    print(f"Lingo Life: {registry.get(module_name).display_name} "
          f"({config['language']['name']}). Type :quit to leave.")
    print_status(storage, registry, args.profile, module_name)

    while True:
        try:
            line = input("\n> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line == ":quit":
            break
        if line == ":status":
            print_status(storage, registry, args.profile, module_name)
            continue
        if line == ":review":
            review(storage, args.profile, module_name)
            continue

        try:
            result = await play_turn(
                storage=storage, profile=args.profile, module_name=module_name,
                utterance=line, llm=llm, registry=registry, config=config,
            )
        except LLMError as e:
            logger.error("Turn failed: %s", e)
            print("(The story stalls. Try again.)")
            continue

        if result.target_model and result.target_model != line:
            print(f"  ~ {result.target_model}")
        for issue in result.grammar.issues:
            print(f"  ! {issue.original} -> {issue.corrected}: {issue.explanation}")
        print(result.message)
        if result.npc_response is not None:
            npc = result.npc_response
            print(f"  {npc.npc_id}: {npc.target}" + (f" ({npc.native})" if npc.native else ""))
        if result.points_awarded:
            print(f"  +{result.points_awarded} points" + ("  LEVEL UP!" if result.leveled_up else ""))
        for quest_id in result.quests_started:
            print(f"  New quest: {quest_id}")
        for badge in result.badges_earned:
            print(f"  Badge earned: {badge}")


def main():
    parser = argparse.ArgumentParser(description="Lingo Life terminal player")
    parser.add_argument("--data-dir", type=Path, default=Path(os.getenv("DATA_DIR", "data")),
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--profile", default="default", help="Player profile name")
    parser.add_argument("--module", default=None, help="Module to play (default: from config)")
    parser.add_argument("--echo", action="store_true",
                        help="Use the echo LLM (prints prompts, no network)")
    parser.add_argument("--new", action="store_true", help="Discard the existing save first")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = apply_env(get_config(args.data_dir))
    try:
        asyncio.run(play(args, config))
    except UnknownModuleError as e:
        print(f"Unknown module: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
