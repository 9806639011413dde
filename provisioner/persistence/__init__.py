"""State registries for provisioning workflows and jobs."""

from __future__ import annotations

from typing import Optional

from ..config import ProvisionerConfig, load_config
from .inmemory import InMemoryJobRepository, InMemoryWorkflowStateRepository
from .repository import JobRepository, WorkflowStateRepository

_repository_instance: WorkflowStateRepository | None = None
_job_repository_instance: JobRepository | None = None


def get_repository(config: Optional[ProvisionerConfig] = None) -> WorkflowStateRepository:
    """Factory function to obtain the workflow state repository.

    Only the ``inmemory`` backend exists; the instance is shared process-wide
    so that every caller polls the same states.
    """

    global _repository_instance
    config = config or load_config()
    if config.store.backend != "inmemory":
        raise ValueError(f"Unsupported store backend: {config.store.backend}")
    if _repository_instance is None:
        _repository_instance = InMemoryWorkflowStateRepository()
    return _repository_instance


def get_job_repository(config: Optional[ProvisionerConfig] = None) -> JobRepository:
    """Factory function to obtain the provisioning job repository."""

    global _job_repository_instance
    config = config or load_config()
    if config.store.backend != "inmemory":
        raise ValueError(f"Unsupported store backend: {config.store.backend}")
    if _job_repository_instance is None:
        _job_repository_instance = InMemoryJobRepository()
    return _job_repository_instance


__all__ = [
    "WorkflowStateRepository",
    "JobRepository",
    "InMemoryWorkflowStateRepository",
    "InMemoryJobRepository",
    "get_repository",
    "get_job_repository",
]
