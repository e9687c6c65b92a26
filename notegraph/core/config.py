"""
Configuration system for notegraph.

Loads YAML configuration files and provides typed access to settings.
Uses Pydantic v2 for validation and immutable config objects.

Configuration Hierarchy (highest priority first):
1. CLI arguments (passed to load_config)
2. Environment variables (NOTEGRAPH_*)
3. YAML configuration file
4. Pydantic field defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from notegraph.matching import list_strategies

DATA_DIR_NAME = ".notegraph"

USER_CONFIG_PATH = Path("~/.config/notegraph/config.yaml")


class VaultConfig(BaseModel):
    """Location of the document folder."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(default=Path("~/notes"), description="Vault root directory")

    @field_validator("path")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @property
    def data_dir(self) -> Path:
        """Application-private directory inside the vault."""
        return self.path / DATA_DIR_NAME

    @property
    def db_path(self) -> Path:
        return self.data_dir / "index.db"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


class LLMConfig(BaseModel):
    """Connection settings for the OpenAI-compatible model endpoint."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="http://localhost:11434/v1", description="Chat completions base URL")
    model: str = Field(default="mistral", description="Default model")
    api_key: str = Field(default="", description="API key (local servers ignore it)")
    extraction_model: str = Field(default="", description="Model for extraction (falls back to model)")
    ask_model: str = Field(default="", description="Model for answering (falls back to model)")
    timeout: float = Field(default=120.0, gt=0, description="Request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, description="Client-side retries")

    def resolve_model(self, purpose: Literal["extraction", "ask"]) -> str:
        """Pick the model for a purpose, falling back to the default model."""
        if purpose == "extraction" and self.extraction_model:
            return self.extraction_model
        if purpose == "ask" and self.ask_model:
            return self.ask_model
        return self.model


class ExtractionConfig(BaseModel):
    """Settings for turning documents into entities and relationships."""

    model_config = ConfigDict(frozen=True)

    min_text_length: int = Field(default=10, ge=0, description="Shorter texts are not sent to the model")
    max_text_chars: int = Field(default=32000, gt=0, description="Character budget per document")
    known_entity_limit: int = Field(default=200, ge=0, description="Known entities listed in the prompt")
    relationship_policy: Literal["constrained", "open"] = Field(
        default="constrained",
        description="'constrained' coerces unknown relationship types to related_to",
    )
    concurrency: int = Field(default=1, ge=1, description="Documents in flight")


class MatchingConfig(BaseModel):
    """Configuration for entity matching."""

    model_config = ConfigDict(frozen=True)

    fuzzy_max_distance: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Max distance (1 - similarity) for a fuzzy match"
    )
    max_aliases: int = Field(default=50, gt=0, description="Alias cap per entity")
    strategies: List[str] = Field(
        default_factory=lambda: ["alias", "fuzzy_name"],
        description="Matching tiers tried in order after the exact name lookup",
    )

    @field_validator("strategies", mode="before")
    @classmethod
    def split_names(cls, v: Any) -> Any:
        # NOTEGRAPH_MATCHING_STRATEGIES=alias,fuzzy_name
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    @field_validator("strategies")
    @classmethod
    def known_strategies(cls, v: List[str]) -> List[str]:
        unknown = [name for name in v if name not in list_strategies()]
        if unknown:
            raise ValueError(f"Unknown matching strategies: {unknown}. Available: {list_strategies()}")
        return v


class AskConfig(BaseModel):
    """Bounds for question answering context."""

    model_config = ConfigDict(frozen=True)

    max_seeds: int = Field(default=10, gt=0)
    max_related: int = Field(default=10, ge=0)
    max_documents: int = Field(default=5, ge=0)
    snippet_window: int = Field(default=300, gt=0)
    max_context_chars: int = Field(default=16000, gt=0)


class NotegraphConfig(BaseModel):
    """Central configuration object."""

    model_config = ConfigDict(frozen=True)

    vault: VaultConfig = Field(default_factory=VaultConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    ask: AskConfig = Field(default_factory=AskConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "NotegraphConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "NotegraphConfig":
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


SECTIONS = ("vault", "llm", "extraction", "matching", "ask")


def load_config(
    path: Optional[Path] = None,
    env_prefix: str = "NOTEGRAPH_",
    cli_overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> NotegraphConfig:
    """Load configuration with hierarchy: defaults → YAML → env vars → CLI args.

    Args:
        path: Optional explicit path to YAML config file
        env_prefix: Prefix for environment variables (default: "NOTEGRAPH_")
        cli_overrides: Optional dictionary of CLI argument overrides
        use_env: Whether to load environment variables (default: True)

    Returns:
        Merged NotegraphConfig

    Examples:
        # Environment variable: NOTEGRAPH_LLM_MODEL=llama3
        config = load_config()  # config.llm.model == "llama3"

        config = load_config(cli_overrides={"vault": {"path": "/tmp/notes"}})
    """
    yaml_path = _find_config_file(path)

    if yaml_path:
        with open(yaml_path) as f:
            config_dict = yaml.safe_load(f) or {}
    else:
        config_dict = {}

    if use_env:
        _deep_merge(config_dict, _extract_env_config(env_prefix))

    if cli_overrides:
        _deep_merge(config_dict, cli_overrides)

    return NotegraphConfig.from_dict(config_dict)


def write_config(path: Path, config: NotegraphConfig) -> Path:
    """Persist a config as YAML, creating parent directories."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    return path


def _find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Find configuration file.

    Searches in this order:
    1. Provided path
    2. ./notegraph.yaml
    3. ~/.config/notegraph/config.yaml

    Returns:
        Path to config file or None if not found
    """
    if path:
        path = Path(path).expanduser()
        if path.exists():
            return path

    local = Path("notegraph.yaml")
    if local.exists():
        return local

    user = USER_CONFIG_PATH.expanduser()
    if user.exists():
        return user

    return None


def _extract_env_config(prefix: str = "NOTEGRAPH_") -> Dict[str, Any]:
    """Extract configuration from environment variables.

    Environment variables are mapped to config paths:
    - NOTEGRAPH_VAULT_PATH=~/notes → {"vault": {"path": "~/notes"}}
    - NOTEGRAPH_LLM_BASE_URL=http://... → {"llm": {"base_url": "http://..."}}
    - NOTEGRAPH_EXTRACTION_CONCURRENCY=4 → {"extraction": {"concurrency": 4}}

    Values stay strings; Pydantic coerces them to the field types.
    Variables without a known section prefix are ignored.
    """
    config: Dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix):].lower()
        parts = config_key.split("_")

        if parts[0] not in SECTIONS or len(parts) < 2:
            continue

        section = parts[0]
        field = "_".join(parts[1:])
        config.setdefault(section, {})[field] = value

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base dictionary (mutates base).

    Recursively merges nested dictionaries. For non-dict values,
    override completely replaces base.

    Examples:
        >>> base = {"a": {"b": 1, "c": 2}, "d": 3}
        >>> _deep_merge(base, {"a": {"b": 10}, "e": 5})
        >>> base
        {"a": {"b": 10, "c": 2}, "d": 3, "e": 5}
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
