"""Pipeline configuration loaded from pipeline.yaml and the environment."""

import os
import re
import shlex
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from docs_pipeline.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "pipeline.yaml"
ENV_PREFIX = "DOCS_PIPELINE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class PipelineSettings(BaseModel):
    """Declarative pipeline configuration."""

    # Environment setup
    python_version: str = Field("3.11", description="Pinned runtime version (major.minor)")
    lock_file: str = Field("requirements.lock", description="Lock file used for reproducible installs")
    install_dependencies: bool = Field(
        True,
        description="Install from the lock file during setup (off when the host pre-installs)"
    )

    # Build
    checkout_dir: Path = Field(Path("."), description="Repository checkout the pipeline runs in")
    build_command: List[str] = Field(
        default_factory=lambda: ["mkdocs", "build", "--clean", "--site-dir", "build"],
        description="Single fixed invocation of the site generator"
    )
    artifact_dir: str = Field("build", description="Generated output directory, relative to the checkout")

    # Publish
    hosting_branch: str = Field("master", description="Branch served as the published site")
    clean: bool = Field(True, description="Replace hosting branch content instead of overlaying it")
    remote: str = Field("origin", description="Git remote name or URL that receives the hosting branch")
    token_env: str = Field("GITHUB_TOKEN", description="Environment variable holding the push token")
    commit_author_name: str = Field("github-actions[bot]")
    commit_author_email: str = Field("41898282+github-actions[bot]@users.noreply.github.com")

    # Trigger gating
    canonical_owner: str = Field("scalikejdbc", description="Repository owner allowed to publish")
    primary_branch: str = Field("develop", description="Integration branch whose pushes publish")
    schedule_cron: str = Field("0 0 * * 0", description="Weekly scheduled tick")
    timeout_minutes: int = Field(30, gt=0, description="Wall-clock ceiling per run")

    @field_validator("python_version", mode="before")
    @classmethod
    def require_quoted_python_version(cls, v: Any) -> Any:
        """Reject YAML numbers; an unquoted 3.10 would load as 3.1."""
        if not isinstance(v, str):
            raise ValueError(
                f"python_version {v!r} is not a string; quote the version in YAML, e.g. \"3.11\""
            )
        return v

    @field_validator("python_version")
    @classmethod
    def validate_python_version(cls, v: str) -> str:
        """Require a dotted numeric version such as 3.11."""
        if not re.match(r"^\d+\.\d+(\.\d+)?$", v):
            raise ValueError(f"python_version '{v}' must look like '3.11'")
        return v

    @field_validator("build_command", mode="before")
    @classmethod
    def split_build_command(cls, v: Any) -> Any:
        """Accept the build command as a shell-style string or a list."""
        if isinstance(v, str):
            v = shlex.split(v)
        if not v:
            raise ValueError("build_command must not be empty")
        return v

    @field_validator("schedule_cron")
    @classmethod
    def validate_schedule_cron(cls, v: str) -> str:
        """Require a five-field cron expression."""
        if len(v.split()) != 5:
            raise ValueError(f"schedule_cron '{v}' must have five fields")
        return v

    @model_validator(mode="after")
    def check_branches_differ(self) -> "PipelineSettings":
        """Publishing onto the branch being built would overwrite its sources."""
        if self.hosting_branch == self.primary_branch:
            raise ValueError(
                f"hosting_branch and primary_branch are both '{self.hosting_branch}'"
            )
        return self

    @property
    def primary_ref(self) -> str:
        """Fully qualified ref of the primary integration branch."""
        return f"refs/heads/{self.primary_branch}"

    @property
    def artifact_path(self) -> Path:
        """Absolute path of the artifact directory."""
        return (self.checkout_dir / self.artifact_dir).resolve()

    @property
    def lock_file_path(self) -> Path:
        """Absolute path of the dependency lock file."""
        return (self.checkout_dir / self.lock_file).resolve()

    def get_token(self) -> Optional[str]:
        """Return the push token from the environment, if any."""
        return os.environ.get(self.token_env) or None


def _coerce_env_value(key: str, raw: str) -> Any:
    """Convert an environment string into the type the field expects."""
    annotation = PipelineSettings.model_fields[key].annotation
    if annotation is bool:
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigError(f"{ENV_PREFIX}{key.upper()}='{raw}' is not a boolean")
    return raw


def _env_overrides() -> Dict[str, Any]:
    """Collect DOCS_PIPELINE_* overrides for known settings."""
    overrides = {}
    for key in PipelineSettings.model_fields:
        env_name = f"{ENV_PREFIX}{key.upper()}"
        if env_name in os.environ:
            overrides[key] = _coerce_env_value(key, os.environ[env_name])
    return overrides


def load_config(path: Optional[str] = None) -> PipelineSettings:
    """Load settings from YAML and apply environment overrides.

    Args:
        path: Config file path. When omitted, DOCS_PIPELINE_CONFIG or
            pipeline.yaml is used, and a missing file falls back to defaults.

    Returns:
        Validated PipelineSettings

    Raises:
        ConfigError: If the file is unreadable or a value is invalid
    """
    load_dotenv(find_dotenv(usecwd=True))

    explicit = path is not None
    config_path = Path(path or os.environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_FILE))

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {config_path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping, got {type(data).__name__}")
        logger.debug(f"[CONFIG] Loaded {len(data)} keys from {config_path}")
    elif explicit:
        raise ConfigError(f"Config file not found: {config_path}")
    else:
        logger.debug(f"[CONFIG] {config_path} not found, using defaults")

    unknown = set(data) - set(PipelineSettings.model_fields)
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(sorted(unknown))}")

    data.update(_env_overrides())

    try:
        return PipelineSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid pipeline configuration: {e}")


_config: Optional[PipelineSettings] = None


def get_config() -> PipelineSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget cached settings so the next get_config() reloads them."""
    global _config
    _config = None
