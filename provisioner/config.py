from __future__ import annotations

import os
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_CORS_ORIGIN,
    DEFAULT_PROGRAMS_DIR,
    DEPENDENCY_CACHE_DIR,
    ENGINE_BINARY,
    RESOLVE_BACKOFF_SECONDS,
    RESOLVE_RETRIES,
)

# Process configuration keys and the environment variable aliases accepted for them.
SETTING_ENV_ALIASES: Dict[str, tuple[str, ...]] = {
    "GitHubToken": ("GitHubToken", "GITHUB_TOKEN"),
    "GitHubOrganizationName": ("GitHubOrganizationName", "GITHUB_ORGANIZATION_NAME"),
    "GitLabToken": ("GitLabToken", "GITLAB_TOKEN"),
    "GitLabBaseUrl": ("GitLabBaseUrl", "GITLAB_BASE_URL"),
    "GitLabNamespaceId": ("GitLabNamespaceId", "GITLAB_NAMESPACE_ID"),
}


class EngineConfig(BaseModel):
    """Infrastructure engine invocation settings."""

    binary: str = ENGINE_BINARY
    install_command: List[str] = Field(default_factory=lambda: ["npm", "install"])
    dependency_dir: str = DEPENDENCY_CACHE_DIR
    passphrase: Optional[str] = None


class StoreConfig(BaseModel):
    """Workflow state and job store settings."""

    backend: Literal["inmemory"] = "inmemory"


class WorkflowConfig(BaseModel):
    """Project creation workflow behaviour."""

    step_timeout: Optional[float] = None
    rollback_repository_on_failure: bool = True
    repository_private: bool = True
    resolve_retries: int = RESOLVE_RETRIES
    resolve_backoff: float = RESOLVE_BACKOFF_SECONDS


class ProvisionerConfig(BaseModel):
    """Top-level configuration model."""

    programs_dir: str = DEFAULT_PROGRAMS_DIR
    engine: EngineConfig = EngineConfig()
    store: StoreConfig = StoreConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    cors_origin: str = DEFAULT_CORS_ORIGIN
    settings: Dict[str, str] = Field(default_factory=dict)

    def setting(self, key: str) -> Optional[str]:
        """Return a raw process configuration value, ``None`` when absent."""
        value = self.settings.get(key)
        return None if value is None else str(value)


def load_config(path: Optional[str] = None) -> ProvisionerConfig:
    """Load configuration from YAML file and overlay environment variables.

    Args:
        path: Optional path to config file. Falls back to PROVISIONER_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("PROVISIONER_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ProvisionerConfig(**data)
    else:
        config = ProvisionerConfig()

    for key, aliases in SETTING_ENV_ALIASES.items():
        for alias in aliases:
            value = os.getenv(alias)
            if value is not None:
                config.settings[key] = value
                break

    programs_dir = os.getenv("PROVISIONER_PROGRAMS_DIR")
    if programs_dir:
        config.programs_dir = programs_dir
    passphrase = os.getenv("PULUMI_CONFIG_PASSPHRASE")
    if passphrase is not None:
        config.engine.passphrase = passphrase
    cors_origin = os.getenv("NUXT_APP_URL")
    if cors_origin:
        config.cors_origin = cors_origin
    return config
