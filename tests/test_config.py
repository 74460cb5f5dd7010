"""Tests for daybrief.config: DaybriefConfig, TOML loading, env and CLI overrides."""

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from daybrief.config import (
    DaybriefConfig,
    load_config,
    merge_cli_overrides,
)
from daybrief.digest.prompts import CLUSTER_BRIEF_PROMPT, MAP_PROMPT

_ENV_VARS = (
    "DAYBRIEF_OUTPUT_DIR",
    "DAYBRIEF_MODEL",
    "DAYBRIEF_MAX_TOKENS_PER_BATCH",
    "DAYBRIEF_MAX_CONCURRENCY",
    "DAYBRIEF_LLM_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Remove env vars that _apply_env_vars reads so tests see TOML values."""
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


class TestDaybriefConfigDefaults:
    """DaybriefConfig defaults."""

    def test_default_digest(self):
        cfg = DaybriefConfig()
        assert cfg.digest.max_tokens_per_batch == 30000
        assert cfg.digest.max_concurrency == 4
        assert cfg.digest.min_shared_tags == 1
        assert cfg.digest.spotlight_slug == ""

    def test_default_llm(self):
        cfg = DaybriefConfig()
        assert cfg.llm.model is None
        assert cfg.llm.timeout == 300
        assert "Daily Briefing" in cfg.llm.system_prompt

    def test_default_output(self):
        assert DaybriefConfig().output.directory == "./digests"

    def test_to_settings(self):
        cfg = DaybriefConfig.model_validate(
            {"digest": {"max_tokens_per_batch": 500, "min_shared_tags": 2}}
        )
        settings = cfg.to_settings()
        assert settings.max_tokens_per_batch == 500
        assert settings.min_shared_tags == 2
        assert settings.max_concurrency == 4

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValidationError):
            DaybriefConfig.model_validate({"digest": {"max_concurrency": 0}})


class TestTemplates:
    def test_defaults(self):
        templates = DaybriefConfig().to_templates()
        assert templates.map_template == MAP_PROMPT
        assert templates.cluster_template == CLUSTER_BRIEF_PROMPT

    def test_override_file(self, tmp_path):
        custom = tmp_path / "map.txt"
        custom.write_text("Custom map {batch_summaries}", encoding="utf-8")
        cfg = DaybriefConfig.model_validate({"prompts": {"map_file": str(custom)}})
        templates = cfg.to_templates()
        assert templates.map_template == "Custom map {batch_summaries}"
        assert templates.cluster_template == CLUSTER_BRIEF_PROMPT

    def test_missing_override_file_raises(self, tmp_path):
        cfg = DaybriefConfig.model_validate(
            {"prompts": {"reduce_file": str(tmp_path / "missing.txt")}}
        )
        with pytest.raises(OSError):
            cfg.to_templates()


class TestLoadConfig:
    """load_config with TOML files."""

    def test_load_from_explicit_path(self, tmp_path):
        toml_path = tmp_path / ".daybrief.toml"
        toml_path.write_text(
            '[digest]\nmax_tokens_per_batch = 8000\nspotlight_slug = "ai-policy"\n'
            '[llm]\nmodel = "haiku"\n'
        )
        cfg = load_config(toml_path)
        assert cfg.digest.max_tokens_per_batch == 8000
        assert cfg.digest.spotlight_slug == "ai-policy"
        assert cfg.llm.model == "haiku"
        assert cfg.output.directory == "./digests"

    def test_missing_explicit_path_uses_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nope.toml")
        assert cfg == DaybriefConfig()

    def test_invalid_toml_uses_defaults(self, tmp_path):
        toml_path = tmp_path / "bad.toml"
        toml_path.write_text("[digest\nbroken = ")
        cfg = load_config(toml_path)
        assert cfg.digest.max_tokens_per_batch == 30000

    def test_finds_file_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".daybrief.toml").write_text('[output]\ndirectory = "/tmp/briefs"\n')
        monkeypatch.chdir(tmp_path)
        with patch("daybrief.config.GLOBAL_CONFIG_PATH", tmp_path / "none.toml"):
            cfg = load_config()
        assert cfg.output.directory == "/tmp/briefs"

    def test_falls_back_to_global_config(self, tmp_path, monkeypatch):
        global_path = tmp_path / "global" / "config.toml"
        global_path.parent.mkdir()
        global_path.write_text("[digest]\nmax_concurrency = 2\n")
        workdir = tmp_path / "work"
        workdir.mkdir()
        monkeypatch.chdir(workdir)
        with patch("daybrief.config.GLOBAL_CONFIG_PATH", global_path):
            cfg = load_config()
        assert cfg.digest.max_concurrency == 2

    def test_no_config_anywhere(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch("daybrief.config.GLOBAL_CONFIG_PATH", Path(tmp_path / "none.toml")):
            cfg = load_config()
        assert cfg == DaybriefConfig()


class TestEnvVars:
    def test_string_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAYBRIEF_MODEL", "opus")
        monkeypatch.setenv("DAYBRIEF_OUTPUT_DIR", "/srv/digests")
        cfg = load_config(tmp_path / "none.toml")
        assert cfg.llm.model == "opus"
        assert cfg.output.directory == "/srv/digests"

    def test_int_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAYBRIEF_MAX_TOKENS_PER_BATCH", "1200")
        monkeypatch.setenv("DAYBRIEF_MAX_CONCURRENCY", "8")
        monkeypatch.setenv("DAYBRIEF_LLM_TIMEOUT", "60")
        cfg = load_config(tmp_path / "none.toml")
        assert cfg.digest.max_tokens_per_batch == 1200
        assert cfg.digest.max_concurrency == 8
        assert cfg.llm.timeout == 60

    def test_non_integer_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAYBRIEF_MAX_CONCURRENCY", "lots")
        cfg = load_config(tmp_path / "none.toml")
        assert cfg.digest.max_concurrency == 4

    def test_env_beats_toml(self, tmp_path, monkeypatch):
        toml_path = tmp_path / ".daybrief.toml"
        toml_path.write_text('[llm]\nmodel = "haiku"\n')
        monkeypatch.setenv("DAYBRIEF_MODEL", "sonnet")
        assert load_config(toml_path).llm.model == "sonnet"


class TestMergeCliOverrides:
    def test_none_values_skipped(self):
        cfg = DaybriefConfig.model_validate({"llm": {"model": "haiku"}})
        merged = merge_cli_overrides(cfg, model=None, spotlight_slug=None)
        assert merged.llm.model == "haiku"

    def test_overrides_applied(self):
        merged = merge_cli_overrides(
            DaybriefConfig(),
            model="opus",
            output_directory="/out",
            max_tokens_per_batch=900,
            spotlight_slug="market-pulse",
        )
        assert merged.llm.model == "opus"
        assert merged.output.directory == "/out"
        assert merged.digest.max_tokens_per_batch == 900
        assert merged.digest.spotlight_slug == "market-pulse"

    def test_unknown_keys_ignored(self):
        assert merge_cli_overrides(DaybriefConfig(), colour="blue") == DaybriefConfig()
