"""Base source-control adapter shared by the hosting platform variants."""

from __future__ import annotations

import abc
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

import httpx

from .. import scaffold
from ..constants import IGNORED_PUSH_DIRS, INFRASTRUCTURE_PREFIX
from ..contracts import FrameworkType, RepoHandle, sanitize_stack_name
from ..errors import PlatformError
from ..substitution import apply_parameters

logger = logging.getLogger(__name__)


def iter_tree(local_dir: Path) -> Iterable[Path]:
    """Yield files under ``local_dir`` in sorted order, skipping dependency caches."""
    for path in sorted(local_dir.rglob("*")):
        relative = path.relative_to(local_dir)
        if any(part in IGNORED_PUSH_DIRS for part in relative.parts):
            continue
        if path.is_file():
            yield path


def destination_path(local_dir: Path, file_path: Path, target_prefix: str) -> str:
    relative = file_path.relative_to(local_dir).as_posix()
    prefix = target_prefix.strip("/")
    return f"{prefix}/{relative}" if prefix else relative


class SourceControlAdapter(metaclass=abc.ABCMeta):
    """Abstract adapter for a source-hosting platform API.

    Subclasses provide authentication, repository addressing and the single
    file write primitive; tree pushes and framework scaffolding are shared.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self.repository: Optional[RepoHandle] = None

    async def __aenter__(self) -> "SourceControlAdapter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    @abc.abstractmethod
    def owner_identifier(self) -> str:
        """Organization or group the repository belongs to."""
        raise NotImplementedError

    @abc.abstractmethod
    async def resolve_or_create_repository(
        self, name: str, private: bool = True, description: Optional[str] = None
    ) -> RepoHandle:
        """Create ``name`` or resolve it when it already exists."""
        raise NotImplementedError

    @abc.abstractmethod
    async def put_file(self, path: str, content: str, message: str) -> None:
        """Create ``path`` or update it in place when it already exists."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_repository(self) -> None:
        """Delete the bound repository."""
        raise NotImplementedError

    def require_repository(self) -> RepoHandle:
        if self.repository is None:
            raise PlatformError(400, "No repository bound to this adapter")
        return self.repository

    async def push_tree(
        self,
        local_dir: Path | str,
        target_prefix: str = "",
        substitutions: Optional[Mapping[str, str]] = None,
    ) -> List[str]:
        """Push every file below ``local_dir`` under ``target_prefix``.

        Each file write is a single API call; the tree as a whole is not atomic.
        Returns the destination paths written.
        """
        root = Path(local_dir)
        if not root.is_dir():
            raise FileNotFoundError(str(root))

        written: List[str] = []
        for file_path in iter_tree(root):
            try:
                content = file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.warning(f"Skipping binary file {file_path}")
                continue
            if substitutions:
                content = apply_parameters(content, substitutions)

            destination = destination_path(root, file_path, target_prefix)
            await self.put_file(destination, content, f"Add/Update {destination}")
            written.append(destination)

        logger.info(
            f"Pushed {len(written)} files to {self.owner_identifier} "
            f"under '{target_prefix or '/'}'"
        )
        return written

    async def push_infrastructure(
        self, local_path: Path | str, parameters: Mapping[str, str], project_name: str
    ) -> List[str]:
        """Push parameter-substituted infrastructure source under ``infrastructure/``."""
        substitutions = dict(parameters)
        substitutions["Name"] = project_name
        return await self.push_tree(local_path, INFRASTRUCTURE_PREFIX, substitutions)

    async def initialize_frameworks(
        self, frameworks: List[FrameworkType], project_name: str
    ) -> None:
        """Scaffold each framework and push it under its own directory."""
        temp_dir = (
            Path(tempfile.gettempdir())
            / f"provisioner-{sanitize_stack_name(project_name)}"
        )
        if temp_dir.exists():
            shutil.rmtree(temp_dir)
        temp_dir.mkdir(parents=True)

        try:
            for framework in frameworks:
                await scaffold.generate(framework, temp_dir / framework.value)

            for framework in frameworks:
                framework_dir = temp_dir / framework.value
                if framework_dir.is_dir():
                    await self.push_tree(framework_dir, framework.value)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
