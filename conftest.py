import json
from collections.abc import Callable

import pytest

from lingo_life.models import GameState, ModuleDefinition
from lingo_life.registry import ModuleRegistry, load_registry
from lingo_life.storage import Storage
from lingo_life.world import new_game


class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    Dicts are JSON-encoded; strings are returned as-is. Raises if a stage is
    called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list]) -> None:
        self._queues: dict[str, list[str]] = {
            stage: [r if isinstance(r, str) else json.dumps(r) for r in queue]
            for stage, queue in responses.items()
        }
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {[c[0] for c in self.calls]}"
            )
        return queue.pop(0)

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]

    def prompt(self, index: int) -> str:
        return self.calls[index][1]

    def assert_exhausted(self) -> None:
        """Assert every queued response was consumed."""
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


@pytest.fixture(scope="session")
def registry() -> ModuleRegistry:
    return load_registry()


@pytest.fixture
def home(registry: ModuleRegistry) -> ModuleDefinition:
    return registry.get("home")


@pytest.fixture
def state(home: ModuleDefinition) -> GameState:
    """A fresh game in the bundled home module."""
    return new_game(home)


@pytest.fixture
def storage(tmp_path) -> Storage:
    return Storage(tmp_path / "data")


@pytest.fixture
def stub_llm() -> Callable[[dict[str, list]], StubLLM]:
    return StubLLM
