"""Shared constants for provisioner."""

from __future__ import annotations

DEFAULT_PROGRAMS_DIR = "pulumiPrograms"
DEFAULT_CORS_ORIGIN = "http://localhost:3001"

ENGINE_BINARY = "pulumi"
ENGINE_INTERNAL_NAMESPACE = "pulumi"
DEPENDENCY_CACHE_DIR = "node_modules"
MANIFEST_FILES = ("Pulumi.yaml", "Pulumi.yml")

INFRASTRUCTURE_PREFIX = "infrastructure"
DEFAULT_BRANCH = "main"

# Directories never pushed to a repository.
IGNORED_PUSH_DIRS = frozenset(
    {"node_modules", ".git", "bin", "obj", ".venv", "__pycache__", ".pulumi"}
)

GITHUB_API_URL = "https://api.github.com"
GITLAB_API_URL = "https://gitlab.com/api/v4/"

RESOLVE_RETRIES = 3
RESOLVE_BACKOFF_SECONDS = 2.0
