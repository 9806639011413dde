"""Single-resource provisioning tracked by opaque job tokens."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Set, Tuple

from .config import ProvisionerConfig, load_config
from .contracts import Job, StackExecutionResult, TemplateRequest
from .credentials import has_real_config_value
from .errors import NotFoundError, ValidationError
from .persistence import JobRepository, get_job_repository
from .stacks import StackRunner

logger = logging.getLogger(__name__)

_RESOURCE_KINDS = ("resource", "platform")


class ResourceProvisioner:
    """Provision one resource stack, synchronously or as a background job."""

    def __init__(
        self,
        runner: StackRunner,
        jobs: JobRepository | None = None,
        config: Optional[ProvisionerConfig] = None,
    ) -> None:
        self._runner = runner
        self._config = config or load_config()
        self._jobs = jobs or get_job_repository(self._config)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def jobs(self) -> JobRepository:
        return self._jobs

    def _resolve(self, request: TemplateRequest) -> Tuple[str, str, Dict[str, str]]:
        if not request.name or not request.name.strip():
            raise ValidationError("The 'Name' field is required.")

        parameters = dict(request.parameters)
        resource_type = (request.resource_type or parameters.pop("type", "")).strip()
        parameters.pop("type", None)
        if not resource_type:
            raise ValidationError("Invalid or missing resource type")

        for kind in _RESOURCE_KINDS:
            try:
                self._runner.locate(kind, resource_type)
            except NotFoundError:
                continue
            break
        else:
            raise ValidationError("Invalid or missing resource type")

        token = self._config.setting("GitHubToken")
        if "githubToken" not in parameters and has_real_config_value(token):
            parameters["githubToken"] = token
        return kind, resource_type, parameters

    async def provision(self, request: TemplateRequest) -> StackExecutionResult:
        """Run the resource stack and report the outcome as a result."""
        try:
            kind, resource_type, parameters = self._resolve(request)
        except ValidationError as exc:
            return StackExecutionResult(
                name=request.name,
                resource_type=request.resource_type,
                status_code=exc.status_code,
                message=exc.message,
            )

        logger.info(f"Provisioning {resource_type} '{request.name}'")
        return await self._runner.run(
            kind, resource_type, request.name, parameters, resource_type=resource_type
        )

    async def submit(self, request: TemplateRequest) -> str:
        """Start provisioning in the background and return the job token."""
        job_id = await self._jobs.create()
        task = asyncio.create_task(self._run_job(job_id, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    async def _run_job(self, job_id: str, request: TemplateRequest) -> None:
        try:
            result = await self.provision(request)
        except Exception as exc:
            logger.exception(f"Job {job_id} crashed")
            await self._jobs.fail(job_id, str(exc))
            return
        if result.succeeded:
            await self._jobs.succeed(job_id, result.outputs or {})
        else:
            await self._jobs.fail(job_id, result.message)
        logger.info(f"Job {job_id} finished with status {result.status_code}")

    async def get_job(self, job_id: str) -> Job:
        job = await self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"No provisioning job with id {job_id}", status_code=404)
        return job

    async def wait(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
