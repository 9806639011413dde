"""Credential retrieval from process configuration."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional
from urllib.parse import urlparse

from .config import ProvisionerConfig
from .errors import CredentialError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("github", "gitlab")

_SECRET_MARKERS = ("token", "password", "secret", "passphrase", "key")


def has_real_config_value(value: Optional[str]) -> bool:
    """Return ``False`` for blank values and unfilled template placeholders."""
    if value is None or not value.strip():
        return False

    lower = value.strip().lower()
    if (
        "should be set" in lower
        or lower.startswith("optional")
        or "replace_with" in lower
    ):
        return False
    return True


def has_valid_http_url(value: Optional[str]) -> bool:
    """A real value that parses as an absolute http/https URL."""
    if not has_real_config_value(value):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_secret_key(key: str) -> bool:
    lower = key.lower()
    return any(marker in lower for marker in _SECRET_MARKERS)


def redact(values: Mapping[str, object]) -> Dict[str, object]:
    """Copy of ``values`` with secret-looking entries masked for logging."""
    return {k: ("***" if is_secret_key(k) else v) for k, v in values.items()}


def retrieve_credentials(platform_kind: str, config: ProvisionerConfig) -> Dict[str, str]:
    """Build the injected credentials for ``platform_kind``.

    Raises:
        UnsupportedPlatformError: Platform has no adapter.
        CredentialError: A required value is missing or still a placeholder.
    """
    kind = platform_kind.strip().lower()
    credentials: Dict[str, str] = {}

    if kind == "github":
        token = config.setting("GitHubToken")
        org = config.setting("GitHubOrganizationName")
        if not has_real_config_value(token) or not has_real_config_value(org):
            raise CredentialError(
                "GitHubToken or GitHubOrganizationName is missing in configuration."
            )
        credentials["githubToken"] = token.strip()
        credentials["githubOrganizationName"] = org.strip()
    elif kind == "gitlab":
        token = config.setting("GitLabToken")
        base_url = config.setting("GitLabBaseUrl")
        if not has_real_config_value(token) or not has_valid_http_url(base_url):
            raise CredentialError(
                "GitLabToken or GitLabBaseUrl is missing or invalid in configuration."
            )
        credentials["gitlabToken"] = token.strip()
        credentials["gitlabBaseUrl"] = base_url.strip()
        namespace_id = config.setting("GitLabNamespaceId")
        if has_real_config_value(namespace_id):
            credentials["gitlabNamespaceId"] = namespace_id.strip()
    else:
        raise UnsupportedPlatformError(f"Unsupported platform type: {kind}")

    logger.debug(f"Credentials resolved for platform {kind}: {redact(credentials)}")
    return credentials
