"""Vocabulary familiarity tracking and spaced-repetition scheduling.

Each word moves through three stages:

  new       just introduced; the object label shows both languages
  learning  used or seen often enough to be recognised
  known     used correctly and consistently since reaching "learning"

Stages only move one step at a time. The only way back down is an explicit
hint request, which drops a known word to learning.

Scheduling is SM-2 style. Every correct use in play counts as a "Good"
(quality 3) review; flashcard reviews supply their own quality:

  <=1 Again   interval 1, ease -0.20
   2  Hard    interval x1.2, ease -0.15
   3  Good    interval x ease
  >=4 Easy    interval x ease x1.3, ease +0.15

All functions are pure: they take a vocabulary table (word id ->
WordFamiliarity) and return a new one. Unknown word ids are ignored so that
stale ids from an older module version do no harm. Timestamps are epoch
seconds passed in by the caller.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

from lingo_life.models import Stage, VocabWord, WordFamiliarity, WorldObject

Vocabulary = dict[str, WordFamiliarity]

# new -> learning
USES_TO_LEARN = 3
SEES_TO_LEARN = 5
COMBINED_TO_LEARN = 6  # uses * 2 + sees

# learning -> known
TOTAL_USES_TO_KNOW = 5
USES_SINCE_LEARNING_TO_KNOW = 2
CONSECUTIVE_CORRECT_TO_KNOW = 3

MIN_EASE = 1.3
DAY_SECONDS = 86_400

_ARTICLE = re.compile(r"^(el|la|los|las)\s+", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def word_id_for(native: str) -> str:
    """"alarm clock" -> "alarm_clock"."""
    return re.sub(r"[^a-z0-9]", "_", native.lower())


def surface_forms(target: str) -> tuple[str, ...]:
    """The target form plus its article-less variant ("la nevera" -> "nevera")."""
    bare = _ARTICLE.sub("", target)
    return (target,) if bare == target else (target, bare)


def new_word(word: VocabWord) -> WordFamiliarity:
    return WordFamiliarity(
        word_id=word_id_for(word.native),
        target_forms=surface_forms(word.target),
        native_form=word.native,
    )


def new_vocabulary(
    words: Iterable[VocabWord], previous: Vocabulary | None = None
) -> Vocabulary:
    """Build a fresh table, keeping prior progress for ids already in ``previous``."""
    vocab: Vocabulary = {}
    for word in words:
        entry = new_word(word)
        if previous and entry.word_id in previous:
            entry = previous[entry.word_id]
        vocab[entry.word_id] = entry
    return vocab


# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------

def next_stage(word: WordFamiliarity) -> Stage:
    if (
        word.stage == "learning"
        and word.correct_uses >= TOTAL_USES_TO_KNOW
        and word.uses_since_learning >= USES_SINCE_LEARNING_TO_KNOW
        and word.consecutive_correct >= CONSECUTIVE_CORRECT_TO_KNOW
    ):
        return "known"

    if word.stage == "new" and (
        word.correct_uses >= USES_TO_LEARN
        or word.context_exposures >= SEES_TO_LEARN
        or word.correct_uses * 2 + word.context_exposures >= COMBINED_TO_LEARN
    ):
        return "learning"

    return word.stage


def _restage(word: WordFamiliarity) -> WordFamiliarity:
    stage = next_stage(word)
    if stage == word.stage:
        return word
    update: dict = {"stage": stage}
    if stage == "learning":
        update["uses_since_learning"] = 0
    return word.model_copy(update=update)


def _with(vocab: Vocabulary, word: WordFamiliarity) -> Vocabulary:
    updated = dict(vocab)
    updated[word.word_id] = word
    return updated


def record_use(vocab: Vocabulary, word_id: str, correct: bool, now: float) -> Vocabulary:
    """The player used a word, correctly or not."""
    word = vocab.get(word_id)
    if word is None:
        return vocab

    if correct:
        word = word.model_copy(update={
            "correct_uses": word.correct_uses + 1,
            "consecutive_correct": word.consecutive_correct + 1,
            "uses_since_learning": (
                word.uses_since_learning + 1
                if word.stage == "learning" else word.uses_since_learning
            ),
            "last_used": now,
        })
        word = schedule(word, 3, now)
    else:
        word = word.model_copy(update={"consecutive_correct": 0, "last_used": now})

    return _with(vocab, _restage(word))


def record_exposure(vocab: Vocabulary, word_id: str) -> Vocabulary:
    """The word appeared in text shown to the player."""
    word = vocab.get(word_id)
    if word is None:
        return vocab
    word = word.model_copy(update={"context_exposures": word.context_exposures + 1})
    return _with(vocab, _restage(word))


def record_hint(vocab: Vocabulary, word_id: str) -> Vocabulary:
    """The player asked for help with the word."""
    word = vocab.get(word_id)
    if word is None:
        return vocab
    update: dict = {"consecutive_correct": 0}
    if word.stage == "known":
        update["stage"] = "learning"
        update["uses_since_learning"] = 0
    return _with(vocab, word.model_copy(update=update))


# ---------------------------------------------------------------------------
# Spaced repetition
# ---------------------------------------------------------------------------

def _round(x: float) -> int:
    # half-up, so 2.5 -> 3
    return math.floor(x + 0.5)


def schedule(word: WordFamiliarity, quality: int, now: float) -> WordFamiliarity:
    interval = word.srs_interval
    ease = word.srs_ease

    if quality <= 1:
        interval = 1
        ease = max(MIN_EASE, ease - 0.2)
    elif quality == 2:
        interval = max(1, _round(max(interval, 1) * 1.2))
        ease = max(MIN_EASE, ease - 0.15)
    elif quality == 3:
        interval = 1 if interval == 0 else _round(interval * ease)
    else:
        interval = 4 if interval == 0 else _round(interval * ease * 1.3)
        ease = ease + 0.15

    return word.model_copy(update={
        "srs_interval": interval,
        "srs_ease": ease,
        "srs_next_review": now + interval * DAY_SECONDS,
        "srs_reviews": word.srs_reviews + 1,
    })


def review_word(vocab: Vocabulary, word_id: str, quality: int, now: float) -> Vocabulary:
    """Explicit flashcard review with a self-graded ``quality``."""
    word = vocab.get(word_id)
    if word is None:
        return vocab
    return _with(vocab, schedule(word, quality, now))


def encountered(word: WordFamiliarity) -> bool:
    return word.correct_uses > 0 or word.context_exposures > 0


def due_words(vocab: Vocabulary, now: float) -> list[WordFamiliarity]:
    due = [
        w for w in vocab.values()
        if encountered(w) and (w.srs_next_review is None or w.srs_next_review <= now)
    ]
    due.sort(key=lambda w: (
        w.srs_next_review is not None,
        w.srs_next_review or 0.0,
        w.word_id,
    ))
    return due


# ---------------------------------------------------------------------------
# Text and summaries
# ---------------------------------------------------------------------------

def extract_words(text: str, vocab: Vocabulary) -> list[str]:
    """Ids of words whose target forms occur in ``text`` (case-insensitive)."""
    haystack = text.lower()
    return [
        word_id for word_id, word in vocab.items()
        if any(form.lower() in haystack for form in word.target_forms)
    ]


def familiarity_summary(vocab: Vocabulary) -> dict[Stage, int]:
    summary: dict[Stage, int] = {"new": 0, "learning": 0, "known": 0}
    for word in vocab.values():
        summary[word.stage] += 1
    return summary


def flashcard_stats(vocab: Vocabulary, now: float) -> dict[str, int]:
    met = [w for w in vocab.values() if encountered(w)]
    return {
        "due": len(due_words(vocab, now)),
        "encountered": len(met),
        "learning": sum(1 for w in met if w.stage == "learning"),
        "known": sum(1 for w in met if w.stage == "known"),
    }


def object_label(obj: WorldObject, vocab: Vocabulary) -> str:
    """Both languages while the word is new, the target language once learning."""
    word = vocab.get(word_id_for(obj.name.native))
    if word is None or word.stage == "new":
        return f"{obj.name.target} ({obj.name.native})"
    return obj.name.target
