"""In-memory implementations of the state repositories."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict

from ..contracts import Job, JobStatus, WorkflowState
from .repository import JobRepository, WorkflowStateRepository


class InMemoryWorkflowStateRepository(WorkflowStateRepository):
    """Store workflow state in local memory.

    Ids auto-increment from 1. Nothing is evicted and nothing survives a
    process restart.
    """

    def __init__(self) -> None:
        self._states: Dict[int, WorkflowState] = {}
        self._last_id = 0
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def next_id(self) -> int:
        async with self._lock:
            self._last_id += 1
            return self._last_id

    async def save(self, request_id: int, state: WorkflowState) -> None:
        async with self._lock:
            self._states[request_id] = state

    async def get(self, request_id: int) -> WorkflowState | None:
        async with self._lock:
            return self._states.get(request_id)

    async def remove(self, request_id: int) -> None:
        async with self._lock:
            self._states.pop(request_id, None)

    async def list(self) -> list[tuple[int, WorkflowState]]:
        async with self._lock:
            return sorted(self._states.items())


class InMemoryJobRepository(JobRepository):
    """Store provisioning jobs in local memory."""

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = asyncio.Lock()

    async def create(self) -> str:
        job_id = uuid.uuid4().hex
        async with self._lock:
            self._jobs[job_id] = Job(status=JobStatus.RUNNING)
        return job_id

    async def succeed(self, job_id: str, outputs: Any) -> None:
        async with self._lock:
            self._jobs[job_id] = Job(status=JobStatus.SUCCEEDED, outputs=outputs)

    async def fail(self, job_id: str, error: str) -> None:
        async with self._lock:
            self._jobs[job_id] = Job(status=JobStatus.FAILED, error=error)

    async def get(self, job_id: str) -> Job | None:
        async with self._lock:
            return self._jobs.get(job_id)

    async def remove(self, job_id: str) -> None:
        async with self._lock:
            self._jobs.pop(job_id, None)
