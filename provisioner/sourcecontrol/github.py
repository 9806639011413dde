"""GitHub REST adapter."""

from __future__ import annotations

import base64
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from ..constants import DEFAULT_BRANCH, GITHUB_API_URL
from ..contracts import RepoHandle
from ..errors import PlatformError
from .base import SourceControlAdapter

logger = logging.getLogger(__name__)

_CONFLICT_STATUSES = (409, 422)


def raise_for_platform_status(response: httpx.Response, action: str) -> None:
    """Raise :class:`PlatformError` carrying the provider status and body."""
    if response.is_success:
        return
    raise PlatformError(
        response.status_code,
        f"{action} failed. Status={response.status_code} "
        f"{response.reason_phrase}. Body={response.text}",
    )


class GitHubSourceControl(SourceControlAdapter):
    """Repository operations against the GitHub REST API using token auth."""

    def __init__(
        self,
        token: str,
        organization: Optional[str],
        repo_name: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        headers = {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "provisioner",
        }
        if client is None:
            client = httpx.AsyncClient(base_url=base_url, headers=headers)
        else:
            client.headers.update(headers)
        super().__init__(client)
        self._organization = organization or None
        if repo_name:
            self.repository = RepoHandle(
                name=repo_name,
                url=f"https://github.com/{organization}/{repo_name}",
                owner=organization,
                created=False,
            )

    @property
    def owner_identifier(self) -> str:
        if self.repository is not None and self.repository.owner:
            return self.repository.owner
        return self._organization or ""

    def _handle_from_payload(self, payload: dict, created: bool) -> RepoHandle:
        return RepoHandle(
            name=payload["name"],
            url=payload["html_url"],
            default_branch=payload.get("default_branch") or DEFAULT_BRANCH,
            owner=(payload.get("owner") or {}).get("login") or self._organization,
            created=created,
        )

    async def _get_repository(self, owner: str, name: str) -> RepoHandle:
        response = await self._client.get(f"/repos/{owner}/{name}")
        raise_for_platform_status(response, f"Resolving GitHub repository {owner}/{name}")
        return self._handle_from_payload(response.json(), created=False)

    async def resolve_or_create_repository(
        self, name: str, private: bool = True, description: Optional[str] = None
    ) -> RepoHandle:
        endpoint = f"/orgs/{self._organization}/repos" if self._organization else "/user/repos"
        body = {
            "name": name,
            "description": description or "Managed by provisioner.",
            "private": private,
            "auto_init": True,
            "has_issues": True,
            "has_projects": True,
            "has_wiki": False,
        }
        response = await self._client.post(endpoint, json=body)

        if response.status_code == 422 and "already exists" in response.text:
            logger.info(f"GitHub repository {name} already exists, resolving it")
            owner = self._organization
            if owner is None:
                user = await self._client.get("/user")
                raise_for_platform_status(user, "Resolving authenticated GitHub user")
                owner = user.json()["login"]
            self.repository = await self._get_repository(owner, name)
            return self.repository

        raise_for_platform_status(response, f"Creating GitHub repository {name}")
        self.repository = self._handle_from_payload(response.json(), created=True)
        logger.info(f"Created GitHub repository {self.repository.url}")
        return self.repository

    def _contents_url(self, path: str) -> str:
        repo = self.require_repository()
        return f"/repos/{self.owner_identifier}/{repo.name}/contents/{quote(path)}"

    async def put_file(self, path: str, content: str, message: str) -> None:
        repo = self.require_repository()
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": repo.default_branch,
        }
        url = self._contents_url(path)
        response = await self._client.put(url, json=body)
        if response.status_code in _CONFLICT_STATUSES:
            existing = await self._client.get(url, params={"ref": repo.default_branch})
            raise_for_platform_status(existing, f"Fetching current revision of '{path}'")
            body["sha"] = existing.json()["sha"]
            response = await self._client.put(url, json=body)
            raise_for_platform_status(response, f"Updating file '{path}'")
            return
        raise_for_platform_status(response, f"Creating file '{path}'")

    async def delete_repository(self) -> None:
        repo = self.require_repository()
        response = await self._client.delete(f"/repos/{self.owner_identifier}/{repo.name}")
        raise_for_platform_status(response, f"Deleting GitHub repository {repo.name}")
        logger.info(f"Deleted GitHub repository {self.owner_identifier}/{repo.name}")
