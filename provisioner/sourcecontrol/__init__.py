"""Source-control adapter factory."""

from __future__ import annotations

from typing import Mapping, Optional

import httpx

from ..config import ProvisionerConfig, load_config
from ..errors import UnsupportedPlatformError
from .base import SourceControlAdapter
from .github import GitHubSourceControl
from .gitlab import GitLabSourceControl, normalize_api_base_url


def get_source_control(
    platform_kind: str,
    credentials: Mapping[str, str],
    config: Optional[ProvisionerConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> SourceControlAdapter:
    """Factory function to build the adapter for ``platform_kind``."""

    config = config or load_config()
    kind = platform_kind.strip().lower()

    if kind == "github":
        return GitHubSourceControl(
            token=credentials["githubToken"],
            organization=credentials.get("githubOrganizationName"),
            client=client,
        )
    elif kind == "gitlab":
        return GitLabSourceControl(
            token=credentials["gitlabToken"],
            base_url=credentials.get("gitlabBaseUrl"),
            namespace_id=credentials.get("gitlabNamespaceId"),
            client=client,
            resolve_retries=config.workflow.resolve_retries,
            resolve_backoff=config.workflow.resolve_backoff,
        )
    else:
        raise UnsupportedPlatformError(f"Unsupported platform type: {kind}")


__all__ = [
    "SourceControlAdapter",
    "GitHubSourceControl",
    "GitLabSourceControl",
    "get_source_control",
    "normalize_api_base_url",
]
