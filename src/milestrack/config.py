"""
Repository coordinates and cache settings.

Settings come from an optional YAML file and a handful of environment
variables; everything has a default pointing at the public milestones
repository.
"""
import os
import yaml
from pathlib import Path
from typing import Optional, Union
from pydantic import BaseModel, Field, ValidationError, field_validator

from .recovery import ConfigError
from .logs import get_logger

log = get_logger("config")

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "milestrack" / "config.yml"

ENV_OVERRIDES = {
    "MILESTRACK_OWNER": "owner",
    "MILESTRACK_REPO": "repo",
    "MILESTRACK_BRANCH": "branch",
    "GITHUB_TOKEN": "token",
}

class RepositoryConfig(BaseModel):
    """Where the projects document lives and how long fetched data stays fresh."""

    owner: str = Field(default="codingshot", description="Repository owner on the remote host")
    repo: str = Field(default="nearmilestones", description="Repository name")
    data_path: str = Field(default="public/data/projects.json", description="Path of the projects document inside the repository")
    branch: str = Field(default="prod", description="Branch whose history feeds the changelog")
    api_base: str = Field(default="https://api.github.com", description="REST API root")
    raw_base: str = Field(default="https://raw.githubusercontent.com", description="Raw content root")
    per_page: int = Field(default=20, ge=1, le=100, description="Revisions requested per history page")
    max_revisions: int = Field(default=10, ge=1, description="Most recent revisions examined for the changelog")
    projects_ttl: float = Field(default=300.0, gt=0, description="Seconds the projects document stays cached")
    changelog_ttl: float = Field(default=600.0, gt=0, description="Seconds the assembled changelog stays cached")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    token: Optional[str] = Field(default=None, description="Optional bearer token for the REST API")

    @field_validator('api_base', 'raw_base')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


def load_config(path: Union[Path, str, None] = None) -> RepositoryConfig:
    """
    Build the active configuration.

    The YAML file is taken from ``path``, else ``MILESTRACK_CONFIG``, else the
    default location when it exists. Environment overrides are applied last.

    Raises:
        ConfigError: If the file cannot be parsed or a value is invalid.
    """
    if path is None:
        env_path = os.getenv('MILESTRACK_CONFIG')
        if env_path:
            path = Path(env_path)
        elif DEFAULT_CONFIG_PATH.exists():
            path = DEFAULT_CONFIG_PATH

    values = {}
    if path is not None:
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                values = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML syntax error in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(values, dict):
            raise ConfigError(f"Config file {path} must hold a mapping")
        log.debug(f"Loaded config from {path}")

    for env_name, field_name in ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            values[field_name] = env_value

    try:
        return RepositoryConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
