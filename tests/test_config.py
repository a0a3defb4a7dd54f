"""Tests for lingo_life.config: defaults, persistence, env overrides."""

import json

from lingo_life.config import apply_env, default_config, get_config, update_config


def test_get_config_defaults(tmp_path):
    """Returns defaults when no config file exists."""
    config = get_config(tmp_path)
    assert config["llm"]["provider_format"] == "koboldcpp"
    assert config["language"] == {"name": "Spanish", "native_name": "English"}
    assert config["start_module"] == "home"
    assert config["vocab_grammar_threshold"] == 80


def test_default_config_is_independent():
    a = default_config()
    a["llm"]["model"] = "changed"
    assert default_config()["llm"]["model"] == ""


def test_update_config_merges_sections(tmp_path):
    """Partial section update preserves the other keys."""
    result = update_config(tmp_path, {"llm": {"model": "qwen"}})
    assert result["llm"]["model"] == "qwen"
    assert result["llm"]["provider_url"] == "http://localhost:5001"

    reloaded = get_config(tmp_path)
    assert reloaded["llm"]["model"] == "qwen"
    stored = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
    assert stored["llm"]["model"] == "qwen"


def test_update_config_scalars(tmp_path):
    update_config(tmp_path, {"points_per_mutation": 10, "language": {"name": "French"}})
    config = get_config(tmp_path)
    assert config["points_per_mutation"] == 10
    assert config["language"] == {"name": "French", "native_name": "English"}


def test_unknown_keys_ignored(tmp_path):
    result = update_config(tmp_path, {"theme": "dark"})
    assert "theme" not in result


def test_apply_env_overrides_llm():
    config = apply_env(default_config(), {
        "LLM_PROVIDER_URL": "http://gpu:8080",
        "LLM_PROVIDER_FORMAT": "openai_chat",
        "LLM_API_KEY": "",
    })
    assert config["llm"]["provider_url"] == "http://gpu:8080"
    assert config["llm"]["provider_format"] == "openai_chat"
    assert config["llm"]["api_key"] == ""
