"""GitLab REST adapter."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import quote, urlparse, urlunparse

import httpx

from ..constants import DEFAULT_BRANCH, GITLAB_API_URL, RESOLVE_BACKOFF_SECONDS, RESOLVE_RETRIES
from ..contracts import RepoHandle, sanitize_stack_name
from ..errors import CredentialError, PlatformError
from .github import raise_for_platform_status
from .base import SourceControlAdapter

logger = logging.getLogger(__name__)

_CONFLICT_STATUSES = (400, 409, 422)


def normalize_api_base_url(base_url: Optional[str]) -> str:
    """Canonical ``.../api/v4/`` root for a bare host or an API URL."""
    trimmed = (base_url or "").strip()
    if not trimmed:
        return GITLAB_API_URL

    parsed = urlparse(trimmed)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise CredentialError(f"Invalid GitLab base URL: '{base_url}'")

    path = parsed.path.rstrip("/")
    if not path.lower().endswith("/api/v4"):
        path = f"{path}/api/v4"
    return urlunparse((parsed.scheme, parsed.netloc, f"{path}/", "", "", ""))


def extract_project_path(project_path_or_url: str) -> str:
    """``https://gitlab.com/group/sub/project`` -> ``group/sub/project``."""
    parsed = urlparse(project_path_or_url)
    if parsed.scheme and parsed.netloc:
        return parsed.path.strip("/")
    return project_path_or_url.strip("/")


class GitLabSourceControl(SourceControlAdapter):
    """Repository operations against the GitLab REST API using a private token."""

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        namespace_id: Optional[str] = None,
        project_path_or_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        resolve_retries: int = RESOLVE_RETRIES,
        resolve_backoff: float = RESOLVE_BACKOFF_SECONDS,
    ) -> None:
        if not token or not token.strip():
            raise CredentialError("GitLab token is required")
        self.api_base = normalize_api_base_url(base_url)
        headers = {"PRIVATE-TOKEN": token, "Accept": "application/json"}
        if client is None:
            client = httpx.AsyncClient(base_url=self.api_base, headers=headers)
        else:
            client.headers.update(headers)
        super().__init__(client)
        self._namespace_id = namespace_id
        self._namespace_path: Optional[str] = None
        self._project_path_or_url = project_path_or_url
        self._resolve_retries = max(1, resolve_retries)
        self._resolve_backoff = resolve_backoff

    @property
    def owner_identifier(self) -> str:
        if self._namespace_path:
            return self._namespace_path
        return self._namespace_id or ""

    async def resolve_project(self, project_path_or_url: str) -> RepoHandle:
        """Look up a project by numeric id, path or web URL.

        A freshly created project may not be readable yet, so lookups are
        retried a bounded number of times with a fixed delay.
        """
        if project_path_or_url.strip().isdigit():
            id_or_path = project_path_or_url.strip()
        else:
            id_or_path = quote(extract_project_path(project_path_or_url), safe="")

        last_status = 404
        for attempt in range(1, self._resolve_retries + 1):
            response = await self._client.get(f"projects/{id_or_path}")
            if response.is_success:
                payload = response.json()
                if payload.get("id"):
                    return self._handle_from_payload(payload, created=False)
            last_status = response.status_code if not response.is_success else 404
            logger.debug(
                f"GitLab project '{project_path_or_url}' not visible "
                f"(attempt {attempt}/{self._resolve_retries}, status {response.status_code})"
            )
            if attempt < self._resolve_retries:
                await asyncio.sleep(self._resolve_backoff)

        raise PlatformError(
            last_status, f"GitLab project '{project_path_or_url}' not accessible yet."
        )

    def _handle_from_payload(self, payload: dict, created: bool) -> RepoHandle:
        namespace = payload.get("namespace") or {}
        if namespace.get("full_path"):
            self._namespace_path = namespace["full_path"]
        return RepoHandle(
            name=payload.get("name") or payload.get("path", ""),
            url=payload.get("web_url", ""),
            default_branch=payload.get("default_branch") or DEFAULT_BRANCH,
            owner=namespace.get("full_path"),
            project_id=payload["id"],
            created=created,
        )

    async def _namespace_full_path(self) -> str:
        if self._namespace_id:
            response = await self._client.get(f"namespaces/{self._namespace_id}")
            raise_for_platform_status(response, f"Resolving GitLab namespace {self._namespace_id}")
            return response.json()["full_path"]
        response = await self._client.get("user")
        raise_for_platform_status(response, "Resolving authenticated GitLab user")
        return response.json()["username"]

    async def resolve_or_create_repository(
        self, name: str, private: bool = True, description: Optional[str] = None
    ) -> RepoHandle:
        path = sanitize_stack_name(name)
        body = {
            "name": name,
            "path": path,
            "description": description or "Managed by provisioner.",
            "visibility": "private" if private else "public",
            "initialize_with_readme": True,
        }
        if self._namespace_id:
            body["namespace_id"] = self._namespace_id

        response = await self._client.post("projects", json=body)
        if response.status_code == 400 and "already been taken" in response.text:
            logger.info(f"GitLab project {name} already exists, resolving it")
            namespace = await self._namespace_full_path()
            self.repository = await self.resolve_project(f"{namespace}/{path}")
            return self.repository

        raise_for_platform_status(response, f"Creating GitLab project {name}")
        payload = response.json()
        # The project can take a moment to become readable after creation.
        resolved = await self.resolve_project(str(payload["id"]))
        self.repository = resolved.model_copy(update={"created": True})
        logger.info(f"Created GitLab project {self.repository.url}")
        return self.repository

    async def _bound_repository(self) -> RepoHandle:
        if self.repository is None and self._project_path_or_url:
            self.repository = await self.resolve_project(self._project_path_or_url)
        return self.require_repository()

    async def put_file(self, path: str, content: str, message: str) -> None:
        repo = await self._bound_repository()
        url = f"projects/{repo.project_id}/repository/files/{quote(path, safe='')}"
        form = {"branch": repo.default_branch, "content": content, "commit_message": message}

        response = await self._client.post(url, data=form)
        if response.is_success:
            return
        if response.status_code in _CONFLICT_STATUSES:
            response = await self._client.put(url, data=form)
            raise_for_platform_status(
                response, f"Updating file '{path}' on GitLab project {repo.project_id}"
            )
            return
        raise_for_platform_status(
            response, f"Creating file '{path}' on GitLab project {repo.project_id}"
        )

    async def delete_repository(self) -> None:
        repo = await self._bound_repository()
        response = await self._client.delete(f"projects/{repo.project_id}")
        raise_for_platform_status(response, f"Deleting GitLab project {repo.name}")
        logger.info(f"Deleted GitLab project {repo.url}")
