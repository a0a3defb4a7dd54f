"""Core domain models.

Every engine function, collaborator adapter and storage helper operates on
these types. Pydantic is used for validation and serialisation at every data
boundary; all models are frozen, so a new game state is always derived with
``model_copy(update=...)`` rather than mutated in place.

Wire names follow the module/collaborator JSON format (camelCase aliases);
Python code uses the snake_case field names.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer

INVENTORY = "inventory"
REMOVED = "removed"
SENTINEL_LOCATIONS = frozenset({INVENTORY, REMOVED})

# Sets serialise as sorted lists so snapshots are byte-stable.
TagSet = Annotated[
    frozenset[str],
    PlainSerializer(lambda s: sorted(s), return_type=list[str]),
]

Stage = Literal["new", "learning", "known"]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class BilingualText(FrozenModel):
    target: str  # language being learned
    native: str  # player's own language


# ---------------------------------------------------------------------------
# World
# ---------------------------------------------------------------------------

class WorldObject(FrozenModel):
    """A thing in the world.

    ``location`` is a location id, ``"inventory"``, the id of a containing
    object, or ``"removed"`` (soft-deleted; the record stays).
    """

    id: str
    name: BilingualText
    location: str
    tags: TagSet = frozenset()
    needs_effect: dict[str, int] = Field(default_factory=dict, alias="needsEffect")
    description: str = ""


class Exit(FrozenModel):
    to: str
    name: BilingualText


class Location(FrozenModel):
    id: str
    name: BilingualText
    exits: tuple[Exit, ...] = ()


class NpcDefinition(FrozenModel):
    id: str
    name: BilingualText
    location: str
    personality: str = ""
    is_pet: bool = Field(False, alias="isPet")


class ChatEntry(FrozenModel):
    player_input: str
    npc_response: str = ""
    npc_action: str = ""
    quest_completed: str = ""
    mood_after: str = ""


class NpcState(FrozenModel):
    """Runtime state of one NPC; exactly one per module NPC per session."""

    location: str
    mood: str = "neutral"
    wants_item: str | None = None
    last_response: str | None = None
    chat_history: tuple[ChatEntry, ...] = ()


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

class VocabWord(FrozenModel):
    target: str
    native: str
    category: Literal["noun", "verb", "adjective", "other"] = "noun"
    gender: Literal["masculine", "feminine"] | None = None


class WordFamiliarity(FrozenModel):
    word_id: str
    target_forms: tuple[str, ...]
    native_form: str

    correct_uses: int = 0
    context_exposures: int = 0
    uses_since_learning: int = 0
    consecutive_correct: int = 0
    last_used: float | None = None
    stage: Stage = "new"

    srs_interval: int = 0  # days
    srs_ease: float = 2.5
    srs_next_review: float | None = None  # epoch seconds
    srs_reviews: int = 0


# ---------------------------------------------------------------------------
# Check rules: declarative conditions for tutorial steps and quests
# ---------------------------------------------------------------------------

class LocationRule(FrozenModel):
    type: Literal["location"] = "location"
    location_id: str = Field(alias="locationId")


class PlayerTagRule(FrozenModel):
    type: Literal["playerTag"] = "playerTag"
    tag: str
    has: bool = True


class ObjectLocationRule(FrozenModel):
    type: Literal["objectLocation"] = "objectLocation"
    object_id: str = Field(alias="objectId")
    location: str


class ObjectTagRule(FrozenModel):
    type: Literal["objectTag"] = "objectTag"
    object_id: str = Field(alias="objectId")
    tag: str
    has: bool = True


class CompletedStepRule(FrozenModel):
    type: Literal["completedStep"] = "completedStep"
    step_id: str = Field(alias="stepId")


class CompletedQuestRule(FrozenModel):
    type: Literal["completedQuest"] = "completedQuest"
    quest_id: str = Field(alias="questId")


class AndRule(FrozenModel):
    type: Literal["and"] = "and"
    rules: tuple[CheckRule, ...]


CheckRule = Annotated[
    Union[
        LocationRule,
        PlayerTagRule,
        ObjectLocationRule,
        ObjectTagRule,
        CompletedStepRule,
        CompletedQuestRule,
        AndRule,
    ],
    Field(discriminator="type"),
]

AndRule.model_rebuild()


# ---------------------------------------------------------------------------
# Mutations: declarative state-change instructions
# ---------------------------------------------------------------------------

class GoMutation(FrozenModel):
    type: Literal["go"] = "go"
    location_id: str = Field(alias="locationId")


class MoveMutation(FrozenModel):
    type: Literal["move"] = "move"
    object_id: str = Field(alias="objectId")
    to: str


class TagMutation(FrozenModel):
    type: Literal["tag"] = "tag"
    object_id: str = Field(alias="objectId")
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()


class PlayerTagMutation(FrozenModel):
    type: Literal["playerTag"] = "playerTag"
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()


class StatusMutation(FrozenModel):
    type: Literal["status"] = "status"
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()


class CreateMutation(FrozenModel):
    type: Literal["create"] = "create"
    obj: WorldObject = Field(alias="object")


class RemoveMutation(FrozenModel):
    type: Literal["remove"] = "remove"
    object_id: str = Field(alias="objectId")


class NpcMoodMutation(FrozenModel):
    type: Literal["npcMood"] = "npcMood"
    npc_id: str = Field(alias="npcId")
    mood: str


Mutation = Annotated[
    Union[
        GoMutation,
        MoveMutation,
        TagMutation,
        PlayerTagMutation,
        StatusMutation,
        CreateMutation,
        RemoveMutation,
        NpcMoodMutation,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Module definition
# ---------------------------------------------------------------------------

class TutorialStep(FrozenModel):
    id: str
    title: str
    description: str = ""
    hint: str = ""
    completion: CheckRule = Field(alias="completionRule")
    next_step_id: str | None = Field(None, alias="nextStepId")


class Badge(FrozenModel):
    id: str
    name: str


class QuestReward(FrozenModel):
    points: int = 0
    badge: Badge | None = None


class Quest(FrozenModel):
    id: str
    title: BilingualText
    description: str = ""
    completion_hint: str = Field("", alias="completionHint")
    hint: str = ""
    source: Literal["npc", "object", "event"] = "event"
    source_id: str | None = Field(None, alias="sourceId")
    trigger: CheckRule = Field(alias="triggerRule")
    reward: QuestReward = QuestReward()
    prereqs: tuple[str, ...] = ()
    auto_start: bool = Field(True, alias="autoStart")


class ModuleDefinition(FrozenModel):
    """A playable area: its map, contents, vocabulary and progression."""

    name: str
    display_name: str = Field(alias="displayName")
    locations: dict[str, Location]
    objects: tuple[WorldObject, ...] = ()
    npcs: tuple[NpcDefinition, ...] = ()
    tutorial: tuple[TutorialStep, ...] = ()
    quests: tuple[Quest, ...] = ()
    vocabulary: tuple[VocabWord, ...] = ()
    guidance: str = ""
    start_location_id: str = Field(alias="startLocationId")
    start_player_tags: TagSet = Field(frozenset(), alias="startPlayerTags")
    first_step_id: str | None = Field(None, alias="firstStepId")
    unlock_level: int = Field(1, alias="unlockLevel")

    def step(self, step_id: str) -> TutorialStep | None:
        return next((s for s in self.tutorial if s.id == step_id), None)

    def quest(self, quest_id: str) -> Quest | None:
        return next((q for q in self.quests if q.id == quest_id), None)

    def npc(self, npc_id: str) -> NpcDefinition | None:
        return next((n for n in self.npcs if n.id == npc_id), None)


# ---------------------------------------------------------------------------
# Game state
# ---------------------------------------------------------------------------

class GameState(FrozenModel):
    """One immutable snapshot of a play session."""

    module: str
    current_location: str
    visited_locations: TagSet = frozenset()
    player_tags: TagSet = frozenset()
    objects: tuple[WorldObject, ...] = ()
    npcs: dict[str, NpcState] = Field(default_factory=dict)
    turn: int = 0

    status_effects: TagSet = frozenset()
    status_timers: dict[str, int] = Field(default_factory=dict)

    current_step: str | None = None
    completed_steps: TagSet = frozenset()

    active_quests: TagSet = frozenset()
    completed_quests: TagSet = frozenset()
    badges: tuple[str, ...] = ()

    vocabulary: dict[str, WordFamiliarity] = Field(default_factory=dict)

    points: int = 0
    level: int = 1
    total_points: int = 0

    def find_object(self, object_id: str) -> WorldObject | None:
        return next((o for o in self.objects if o.id == object_id), None)


# ---------------------------------------------------------------------------
# Collaborator results
# ---------------------------------------------------------------------------

class GrammarIssue(FrozenModel):
    type: str = "other"
    original: str = ""
    corrected: str = ""
    explanation: str = ""


class GrammarFeedback(FrozenModel):
    score: int = 100
    issues: tuple[GrammarIssue, ...] = ()


class Understanding(FrozenModel):
    """What the language-understanding pass made of the player's input."""

    understood: bool = False
    grammar: GrammarFeedback = GrammarFeedback()
    target_model: str = Field("", alias="targetModel")
    valid: bool = False
    invalid_reason: str | None = Field(None, alias="invalidReason")
    mutations: tuple[Mutation, ...] = ()


class NpcResponse(FrozenModel):
    npc_id: str = Field(alias="npcId")
    target: str = Field("", validation_alias=AliasChoices("target", "spanish"))
    native: str = Field("", validation_alias=AliasChoices("native", "english"))
    wants_item: str | None = Field(None, alias="wantsItem")
    action_text: str | None = Field(None, alias="actionText")


class Narration(FrozenModel):
    """What the narration pass reported about an applied turn."""

    message: str = ""
    steps_completed: tuple[str, ...] = Field((), alias="stepsCompleted")
    quests_started: tuple[str, ...] = Field((), alias="questsStarted")
    quests_completed: tuple[str, ...] = Field((), alias="questsCompleted")
    npc_response: NpcResponse | None = Field(None, alias="npcResponse")
    mutations: tuple[Mutation, ...] = ()


class TurnResult(FrozenModel):
    """Outcome of one processed turn, including the next state."""

    state: GameState
    understood: bool
    grammar: GrammarFeedback
    target_model: str = ""
    valid: bool
    invalid_reason: str | None = None
    mutations: tuple[Mutation, ...] = ()
    message: str = ""
    npc_response: NpcResponse | None = None
    points_awarded: int = 0
    leveled_up: bool = False
    steps_completed: tuple[str, ...] = ()
    quests_started: tuple[str, ...] = ()
    quests_completed: tuple[str, ...] = ()
    badges_earned: tuple[str, ...] = ()


TranscriptRole = Literal["player", "narrator", "npc", "system"]


class TranscriptEntry(FrozenModel):
    """A single line of a session's append-only transcript."""

    turn: int
    role: TranscriptRole
    speaker: str  # "player" | "narrator" | <npc_id>
    content: str
