"""JSON file storage for save games and transcripts.

Everything lives in flat JSON files under a base directory; there is no
database. A save is one GameState snapshot per (profile, module) pair, so a
profile can hold progress in several modules at once.

Directory layout:

    {base}/
      config.json                 ← app config (see lingo_life.config)
      saves/
        {profile}/
          {module}.json           ← GameState snapshot
          {module}.log.json       ← append-only TranscriptEntry list
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from lingo_life.models import GameState, TranscriptEntry, WordFamiliarity

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]+")


def _safe(name: str) -> str:
    """Keep profile/module names usable as file names."""
    cleaned = _SAFE_NAME.sub("-", name).strip("-.")
    return cleaned or "default"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._saves_root = base_path / "saves"
        self._saves_root.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _profile_dir(self, profile: str) -> Path:
        return self._saves_root / _safe(profile)

    def _save_file(self, profile: str, module: str) -> Path:
        return self._profile_dir(profile) / f"{_safe(module)}.json"

    def _log_file(self, profile: str, module: str) -> Path:
        return self._profile_dir(profile) / f"{_safe(module)}.log.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    def _write_json(self, path: Path, data: Any) -> None:
        # write-then-rename so a crash never leaves half a snapshot
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    def save_game(self, profile: str, state: GameState) -> None:
        """Store ``state`` as the profile's snapshot for ``state.module``."""
        self._profile_dir(profile).mkdir(parents=True, exist_ok=True)
        self._write_json(
            self._save_file(profile, state.module),
            state.model_dump(mode="json", by_alias=True),
        )

    def load_game(self, profile: str, module: str) -> GameState | None:
        path = self._save_file(profile, module)
        if not path.exists():
            return None
        return GameState.model_validate(self._read_json(path))

    def delete_game(self, profile: str, module: str) -> bool:
        """Remove a save and its transcript. Returns False if there was none."""
        path = self._save_file(profile, module)
        if not path.exists():
            return False
        path.unlink()
        self._log_file(profile, module).unlink(missing_ok=True)
        return True

    def list_saves(self, profile: str) -> list[str]:
        """Module names the profile has a save for."""
        directory = self._profile_dir(profile)
        if not directory.exists():
            return []
        return sorted(
            p.stem for p in directory.glob("*.json")
            if not p.name.endswith(".log.json")
        )

    def get_vocabulary(self, profile: str) -> dict[str, WordFamiliarity]:
        """Vocabulary from the profile's most recently written save, or {}."""
        directory = self._profile_dir(profile)
        if not directory.exists():
            return {}
        saves = [
            p for p in directory.glob("*.json")
            if not p.name.endswith(".log.json")
        ]
        if not saves:
            return {}
        latest = max(saves, key=lambda p: p.stat().st_mtime)
        return GameState.model_validate(self._read_json(latest)).vocabulary

    # ------------------------------------------------------------------
    # Transcript (append-only)
    # ------------------------------------------------------------------

    def get_transcript(self, profile: str, module: str) -> list[TranscriptEntry]:
        path = self._log_file(profile, module)
        if not path.exists():
            return []
        return [TranscriptEntry.model_validate(e) for e in self._read_json(path)]

    def append_transcript(
        self, profile: str, module: str, entries: list[TranscriptEntry]
    ) -> None:
        existing = self.get_transcript(profile, module)
        existing.extend(entries)
        self._profile_dir(profile).mkdir(parents=True, exist_ok=True)
        self._write_json(
            self._log_file(profile, module),
            [e.model_dump(mode="json") for e in existing],
        )
