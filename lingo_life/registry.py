"""Module registry: the set of playable modules, as an immutable value.

A registry is built once (usually from the JSON presets shipped in
``lingo_life/presets``) and passed explicitly into every turn. Nothing is
registered globally, so concurrent sessions cannot see each other's modules.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from types import MappingProxyType

from lingo_life.models import ModuleDefinition

logger = logging.getLogger(__name__)

PRESETS_DIR = Path(__file__).parent / "presets"


class UnknownModuleError(KeyError):
    """Raised when a module name is not in the registry."""


class ModuleRegistry:
    def __init__(self, modules: Iterable[ModuleDefinition] = ()) -> None:
        self._modules = MappingProxyType({m.name: m for m in modules})

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[ModuleDefinition]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)

    def get(self, name: str) -> ModuleDefinition:
        try:
            return self._modules[name]
        except KeyError:
            raise UnknownModuleError(name) from None

    def names(self) -> list[str]:
        return list(self._modules)

    def unlocked(self, level: int) -> list[ModuleDefinition]:
        """Modules a player of ``level`` may enter."""
        return [m for m in self._modules.values() if m.unlock_level <= level]

    def with_module(self, module: ModuleDefinition) -> ModuleRegistry:
        """A new registry with ``module`` added or replaced."""
        modules = dict(self._modules)
        modules[module.name] = module
        return ModuleRegistry(modules.values())


def load_module(path: Path) -> ModuleDefinition:
    return ModuleDefinition.model_validate_json(path.read_text(encoding="utf-8"))


def load_registry(presets_dir: Path | None = None) -> ModuleRegistry:
    """Load every ``*.json`` module definition in ``presets_dir``."""
    directory = presets_dir or PRESETS_DIR
    modules = []
    for path in sorted(directory.glob("*.json")):
        modules.append(load_module(path))
        logger.debug("loaded module %s from %s", modules[-1].name, path)
    return ModuleRegistry(modules)
