"""Repository abstractions for workflow and job state."""

from __future__ import annotations

from typing import Any, Protocol

from ..contracts import Job, WorkflowState


class WorkflowStateRepository(Protocol):
    """Protocol for project creation state backends."""

    async def next_id(self) -> int:
        """Allocate a new request id."""

    async def save(self, request_id: int, state: WorkflowState) -> None:
        """Insert or replace the state stored under ``request_id``."""

    async def get(self, request_id: int) -> WorkflowState | None:
        """Retrieve the state by id."""

    async def remove(self, request_id: int) -> None:
        """Forget a request."""

    async def list(self) -> list[tuple[int, WorkflowState]]:
        """Return all stored states."""


class JobRepository(Protocol):
    """Protocol for single-resource provisioning job backends."""

    async def create(self) -> str:
        """Register a running job and return its opaque token."""

    async def succeed(self, job_id: str, outputs: Any) -> None:
        """Mark a job as succeeded."""

    async def fail(self, job_id: str, error: str) -> None:
        """Mark a job as failed."""

    async def get(self, job_id: str) -> Job | None:
        """Retrieve the job by token."""

    async def remove(self, job_id: str) -> None:
        """Forget a job."""
