"""Unified configuration loaded from .daybrief.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from daybrief.digest.models import DigestSettings, PromptTemplates
from daybrief.digest.prompts import DIGEST_INSTRUCTIONS

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".daybrief.toml"
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "daybrief" / "config.toml"


class DigestSectionConfig(BaseModel):
    """[digest] section."""

    max_tokens_per_batch: int = Field(default=30000, gt=0)
    chars_per_token: int = Field(default=4, gt=0)
    max_concurrency: int = Field(default=4, ge=1)
    min_shared_tags: int = Field(default=1, ge=1)
    spotlight_slug: str = ""


class LLMSectionConfig(BaseModel):
    """[llm] section."""

    model: str | None = None
    timeout: int = 300
    system_prompt: str = DIGEST_INSTRUCTIONS


class PromptsSectionConfig(BaseModel):
    """[prompts] section: optional files overriding the default templates."""

    map_file: str = ""
    cluster_file: str = ""
    reduce_file: str = ""


class OutputConfig(BaseModel):
    """[output] section."""

    directory: str = "./digests"


class DaybriefConfig(BaseModel):
    """Top-level configuration model."""

    digest: DigestSectionConfig = Field(default_factory=DigestSectionConfig)
    llm: LLMSectionConfig = Field(default_factory=LLMSectionConfig)
    prompts: PromptsSectionConfig = Field(default_factory=PromptsSectionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def to_settings(self) -> DigestSettings:
        """Convert to the settings injected into the orchestrator."""
        return DigestSettings(
            max_tokens_per_batch=self.digest.max_tokens_per_batch,
            chars_per_token=self.digest.chars_per_token,
            max_concurrency=self.digest.max_concurrency,
            min_shared_tags=self.digest.min_shared_tags,
        )

    def to_templates(self) -> PromptTemplates:
        """Load prompt templates, reading any override files.

        Raises:
            OSError: If a configured template file cannot be read.
        """
        defaults = PromptTemplates()
        return PromptTemplates(
            map_template=_read_template(self.prompts.map_file, defaults.map_template),
            cluster_template=_read_template(
                self.prompts.cluster_file, defaults.cluster_template
            ),
            reduce_template=_read_template(self.prompts.reduce_file, defaults.reduce_template),
        )


def _read_template(path: str, default: str) -> str:
    if not path:
        return default
    return Path(path).expanduser().read_text(encoding="utf-8")


def load_config(path: str | Path | None = None) -> DaybriefConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .daybrief.toml in CWD
    3. ~/.config/daybrief/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged DaybriefConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for candidate in (Path(".") / CONFIG_FILENAME, GLOBAL_CONFIG_PATH):
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break

    config = DaybriefConfig.model_validate(data) if data else DaybriefConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: DaybriefConfig, **cli_kwargs: object) -> DaybriefConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).

    Args:
        config: Base config.
        **cli_kwargs: CLI flag values (e.g. ``model``, ``output_directory``).

    Returns:
        Updated config with CLI overrides applied.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "output_directory": ("output", "directory"),
        "model": ("llm", "model"),
        "timeout": ("llm", "timeout"),
        "max_tokens_per_batch": ("digest", "max_tokens_per_batch"),
        "max_concurrency": ("digest", "max_concurrency"),
        "min_shared_tags": ("digest", "min_shared_tags"),
        "spotlight_slug": ("digest", "spotlight_slug"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return DaybriefConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: DaybriefConfig) -> DaybriefConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "DAYBRIEF_OUTPUT_DIR": ("output", "directory"),
        "DAYBRIEF_MODEL": ("llm", "model"),
    }
    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    int_mapping: dict[str, tuple[str, str]] = {
        "DAYBRIEF_MAX_TOKENS_PER_BATCH": ("digest", "max_tokens_per_batch"),
        "DAYBRIEF_MAX_CONCURRENCY": ("digest", "max_concurrency"),
        "DAYBRIEF_LLM_TIMEOUT": ("llm", "timeout"),
    }
    for env_var, (section, field) in int_mapping.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        try:
            data[section][field] = int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", env_var, raw)

    return DaybriefConfig.model_validate(data)
