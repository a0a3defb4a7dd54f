"""Turn pipeline.

Runs the full turn loop for one player utterance:
  1. understand  the "understand" collaborator parses the utterance into
                 grammar feedback, a model sentence and mutations.
  2. apply       validated mutations change the world; points and
                 vocabulary credit are recorded.
  3. narrate     the "narrate" collaborator describes the outcome, may speak
                 for an NPC, and reports steps and quests.
  4. progress    tutorial, quests and status timers are brought up to date.

``play_turn`` wraps ``run_turn`` with loading and saving through
``lingo_life.storage.Storage``.
"""

from .orchestrator import play_turn, run_turn, validate_mutations  # noqa: F401
