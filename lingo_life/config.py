"""App configuration (LLM connection, language, turn scoring).

Stored as ``{data_dir}/config.json``; anything missing falls back to
``_CONFIG_DEFAULTS``. Environment variables (usually from ``.env``) override
the LLM connection and are applied by ``apply_env``.
"""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider_url": "http://localhost:5001",
        "api_key": "",
        "provider_format": "koboldcpp",
        "model": "",
        "timeout": 60.0,
        "max_tokens": 1024,
    },
    "language": {
        "name": "Spanish",
        "native_name": "English",
    },
    "start_module": "home",
    # minimum grammar score for a turn's words to count as correct uses
    "vocab_grammar_threshold": 80,
    "points_per_mutation": 5,
}

_ENV_OVERRIDES = {
    "LLM_PROVIDER_URL": "provider_url",
    "LLM_API_KEY": "api_key",
    "LLM_PROVIDER_FORMAT": "provider_format",
    "LLM_MODEL": "model",
}

_SECTIONS = ("llm", "language")
_SCALARS = ("start_module", "vocab_grammar_threshold", "points_per_mutation")


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def default_config() -> dict[str, Any]:
    """A fresh, independent copy of the defaults."""
    return json.loads(json.dumps(_CONFIG_DEFAULTS))


def _merge(config: dict[str, Any], fields: Mapping[str, Any]) -> None:
    for section in _SECTIONS:
        if isinstance(fields.get(section), dict):
            config[section].update(fields[section])
    for key in _SCALARS:
        if key in fields:
            config[key] = fields[key]


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = default_config()
    path = _config_path(data_dir)
    if path.is_file():
        _merge(config, json.loads(path.read_text(encoding="utf-8")))
    return config


def update_config(data_dir: Path, fields: Mapping[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config(data_dir)
    _merge(config, fields)
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config, indent=2), encoding="utf-8")
    return config


def apply_env(config: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Overlay LLM_* environment variables onto a config dict (not persisted)."""
    environ = os.environ if environ is None else environ
    for var, key in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            config["llm"][key] = value
    return config
