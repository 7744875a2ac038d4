"""Configuration loading for ticketpilot.

Settings live in a YAML file (``~/.ticketpilot/config.yaml`` by default) and
can be overridden per key with ``TICKETPILOT_<KEY>`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_BASE_BRANCH = "develop"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_AGENT_COMMAND = "copilot"
DEFAULT_ENRICHMENT_MODEL = "gpt-4o-mini"
DEFAULT_ENRICHMENT_API_KEY_ENV = "OPENAI_API_KEY"
CONFIG_FILE_NAME = "config.yaml"
ENV_PREFIX = "TICKETPILOT_"

DEFAULT_RESOLUTION_PROMPT = """You are working on a repository.

Fix the following issue in the code.

**Issue identifier:**
${ID}
**Issue description:**
${DESCRIPTION}

**Rules:**
- Only modify what is necessary
- Do not refactor unrelated code
- Do not change dependencies
- Do not run any git operations
- Keep changes minimal
- Apply the changes directly to the code
"""

DEFAULT_COMMAND_PROMPT = (
    "Act as a senior developer. Analyze the software ticket described in the "
    "following file and provide an implementation that resolves it. File -> @${FILE}"
)

_PATH_KEYS = ("automation_root", "base_repository_path", "database_path", "prompts_dir")
_DIRECTORY_KEYS = ("automation_root", "base_repository_path")
_BOOL_KEYS = ("debug", "cleanup_on_error")
_TRUE_VALUES = ("1", "true", "yes", "on")

# Names used by the web UI and older config files
KEY_ALIASES = {
    "automationPath": "automation_root",
    "automation_path": "automation_root",
    "baseRepositoryPath": "base_repository_path",
    "baseBranch": "base_branch",
    "copilotModel": "model",
    "ticketResolutionPrompt": "ticket_resolution_prompt",
    "ticketCommandPrompt": "ticket_command_prompt",
    "cleanupOnError": "cleanup_on_error",
}


class ConfigurationError(Exception):
    """A required setting is missing or invalid."""


def default_home() -> Path:
    """Directory holding the config file, ticket database and saved prompts."""
    return Path(os.environ.get("TICKETPILOT_HOME", Path.home() / ".ticketpilot")).expanduser()


def default_config_path() -> Path:
    """Path of the config file, honouring TICKETPILOT_CONFIG."""
    override = os.environ.get("TICKETPILOT_CONFIG")
    if override:
        return Path(override).expanduser()
    return default_home() / CONFIG_FILE_NAME


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass
class PilotConfig:
    """Runtime configuration.

    ``automation_root`` is the directory holding one worktree per ticket and
    ``base_repository_path`` the repository the worktrees are attached to.
    Both are optional here; the resolution pipeline refuses to run without them.
    """

    automation_root: Path | None = None
    base_repository_path: Path | None = None
    base_branch: str = DEFAULT_BASE_BRANCH
    model: str = DEFAULT_MODEL
    agent_command: str = DEFAULT_AGENT_COMMAND
    ticket_resolution_prompt: str = DEFAULT_RESOLUTION_PROMPT
    ticket_command_prompt: str = DEFAULT_COMMAND_PROMPT
    debug: bool = False
    cleanup_on_error: bool = True
    database_path: Path = field(default_factory=lambda: default_home() / "tickets.db")
    prompts_dir: Path = field(default_factory=lambda: default_home() / "prompts")
    enrichment_base_url: str | None = None
    enrichment_model: str = DEFAULT_ENRICHMENT_MODEL
    enrichment_api_key_env: str = DEFAULT_ENRICHMENT_API_KEY_ENV

    @classmethod
    def keys(cls) -> list[str]:
        """Names of all settable keys."""
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PilotConfig:
        """Create config from a mapping, ignoring unknown keys.

        Raises:
            ConfigurationError: If the mapping holds a value of the wrong shape.
        """
        config = cls()
        for raw_key, value in data.items():
            key = KEY_ALIASES.get(raw_key, raw_key)
            if key not in cls.keys() or value is None:
                continue
            setattr(config, key, config._coerce(key, value))
        return config

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping suitable for YAML or JSON."""
        data: dict[str, Any] = {}
        for key in self.keys():
            value = getattr(self, key)
            data[key] = str(value) if isinstance(value, Path) else value
        return data

    @property
    def enrichment_api_key(self) -> str | None:
        """API key for the enrichment service, read from the environment."""
        return os.environ.get(self.enrichment_api_key_env) or None

    def set_value(self, key: str, value: Any) -> None:
        """Set a single key with validation.

        Directory settings must point at an existing directory. Empty values
        reset prompts, branch and model to their defaults.

        Raises:
            ConfigurationError: If the key is unknown or the value is invalid.
        """
        key = KEY_ALIASES.get(key, key)
        if key not in self.keys():
            raise ConfigurationError(f"Invalid configuration key: {key}")

        if key in _DIRECTORY_KEYS:
            if not value:
                raise ConfigurationError(f"A path is required for {key}")
            path = Path(value).expanduser()
            if not path.exists():
                raise ConfigurationError(f"Path for {key} does not exist: {path}")
            if not path.is_dir():
                raise ConfigurationError(f"Path for {key} is not a directory: {path}")
            setattr(self, key, path)
            return

        if value in (None, ""):
            defaults = {
                "ticket_resolution_prompt": DEFAULT_RESOLUTION_PROMPT,
                "ticket_command_prompt": DEFAULT_COMMAND_PROMPT,
                "base_branch": DEFAULT_BASE_BRANCH,
                "model": DEFAULT_MODEL,
                "agent_command": DEFAULT_AGENT_COMMAND,
            }
            if key in defaults:
                setattr(self, key, defaults[key])
                return
            if key == "enrichment_base_url":
                self.enrichment_base_url = None
                return
            raise ConfigurationError(f"A value is required for {key}")

        setattr(self, key, self._coerce(key, value))

    def apply_env(self, environ: dict[str, str] | None = None) -> None:
        """Override values from TICKETPILOT_<KEY> environment variables."""
        environ = dict(os.environ) if environ is None else environ
        for key in self.keys():
            raw = environ.get(f"{ENV_PREFIX}{key.upper()}")
            if raw is not None and raw != "":
                setattr(self, key, self._coerce(key, raw))

    def save(self, config_path: Path | str | None = None) -> Path:
        """Write the config to YAML and return the path written."""
        return save_config(self, config_path)

    @staticmethod
    def _coerce(key: str, value: Any) -> Any:
        if key in _PATH_KEYS:
            return Path(str(value)).expanduser()
        if key in _BOOL_KEYS:
            return _parse_bool(value)
        if not isinstance(value, str | int | float):
            raise ConfigurationError(f"Invalid value for {key}: {value!r}")
        return str(value)


def load_config(
    config_path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> PilotConfig:
    """Load configuration from YAML, then apply environment overrides.

    A missing file yields the defaults.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    config_path = Path(config_path) if config_path is not None else default_config_path()

    data: Any = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration must be a YAML mapping, got {type(data).__name__}"
        )

    config = PilotConfig.from_dict(data)
    config.apply_env(environ)
    return config


def save_config(config: PilotConfig, config_path: Path | str | None = None) -> Path:
    """Persist the config as YAML, creating the parent directory if needed."""
    config_path = Path(config_path) if config_path is not None else default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False, allow_unicode=True)
    return config_path
