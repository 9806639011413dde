"""Project creation workflow.

Sequences repository creation, framework scaffolding and template stack
execution for one request, recording progress in a polled state record.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, TypeVar

from .config import ProvisionerConfig, load_config
from .contracts import ProjectCreationRequest, WorkflowState, WorkflowStep
from .credentials import retrieve_credentials
from .errors import NotFoundError, ProvisionerError, StepTimeoutError, ValidationError
from .persistence import WorkflowStateRepository, get_repository
from .saga import CompensationLog
from .sourcecontrol import SourceControlAdapter, get_source_control
from .stacks import StackRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")

SourceControlFactory = Callable[..., SourceControlAdapter]


def validate_request(request: Optional[ProjectCreationRequest]) -> None:
    """Reject requests missing the fields every later step relies on."""
    if request is None:
        raise ValidationError("Request body is null")
    if not request.template_name or not request.template_name.strip():
        raise ValidationError("Missing 'TemplateName' in request")
    if not request.project_name or not request.project_name.strip():
        raise ValidationError("Missing 'ProjectName' in request")
    if request.platform is None:
        raise ValidationError("Missing 'Platform' in request")
    if not request.platform.type or not request.platform.type.strip():
        raise ValidationError("Missing 'Platform.Type' in request")


class ProjectCreationWorkflow:
    """Service responsible for running project creation requests."""

    def __init__(
        self,
        runner: StackRunner,
        repository: WorkflowStateRepository | None = None,
        config: Optional[ProvisionerConfig] = None,
        source_control_factory: SourceControlFactory = get_source_control,
    ) -> None:
        self._runner = runner
        self._config = config or load_config()
        self._repository = repository or get_repository(self._config)
        self._source_control_factory = source_control_factory
        self._tasks: Set[asyncio.Task] = set()

    @property
    def repository(self) -> WorkflowStateRepository:
        return self._repository

    async def submit(self, request: ProjectCreationRequest) -> int:
        """Register ``request`` and start it in the background.

        Returns:
            Request id to poll with :meth:`get_state`.
        """
        request_id = await self._repository.next_id()
        await self._repository.save(request_id, WorkflowState())
        task = asyncio.create_task(self.run(request_id, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(
            f"Accepted project creation request {request_id} for '{request.project_name}'"
        )
        return request_id

    async def get_state(self, request_id: int) -> WorkflowState:
        state = await self._repository.get(request_id)
        if state is None:
            raise NotFoundError(
                f"No project creation request with id {request_id}", status_code=404
            )
        return state

    async def create_project(self, request: ProjectCreationRequest) -> Dict[str, Any]:
        """Run a request to completion and return its outputs.

        Raises:
            ProvisionerError: The error that failed the workflow.
        """
        request_id = await self._repository.next_id()
        await self._repository.save(request_id, WorkflowState())
        state = await self.run(request_id, request)
        if state.error is not None:
            if isinstance(state.error, ProvisionerError):
                raise state.error
            raise ProvisionerError(state.error_message) from state.error
        return dict(state.outputs)

    async def wait(self) -> None:
        """Wait for all background requests started by :meth:`submit`."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    async def _enter(self, request_id: int, state: WorkflowState, step: WorkflowStep) -> None:
        state.advance(step)
        await self._repository.save(request_id, state)
        logger.info(f"Request {request_id}: {step.value}")

    async def _bounded(self, step: WorkflowStep, awaitable: Awaitable[T]) -> T:
        timeout = self._config.workflow.step_timeout
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise StepTimeoutError(
                f"Step {step.value} timed out after {timeout} seconds"
            ) from exc

    async def run(self, request_id: int, request: ProjectCreationRequest) -> WorkflowState:
        """Execute every step for ``request`` and return the terminal state.

        Failures are recorded on the state rather than raised, and the
        compensations registered so far are executed.
        """
        state = await self._repository.get(request_id)
        if state is None:
            state = WorkflowState()
            await self._repository.save(request_id, state)

        compensations = CompensationLog()
        adapter: Optional[SourceControlAdapter] = None
        try:
            validate_request(request)

            await self._enter(request_id, state, WorkflowStep.GIT_SESSION_SETUP)
            kind = request.platform.kind
            credentials = retrieve_credentials(kind, self._config)
            adapter = self._source_control_factory(kind, credentials, self._config)

            step = WorkflowStep.GIT_REPOSITORY_CREATION
            await self._enter(request_id, state, step)
            repo = await self._bounded(
                step,
                adapter.resolve_or_create_repository(
                    request.project_name,
                    private=self._config.workflow.repository_private,
                    description=f"Provisioned from template {request.template_name}",
                ),
            )
            state.outputs.update(repo.outputs())
            await self._repository.save(request_id, state)
            if repo.created and self._config.workflow.rollback_repository_on_failure:
                compensations.add(f"delete repository {repo.name}", adapter.delete_repository)

            step = WorkflowStep.FRAMEWORK_INITIALIZATION
            await self._enter(request_id, state, step)
            frameworks = request.requested_frameworks()
            if frameworks:
                await self._bounded(
                    step, adapter.initialize_frameworks(frameworks, request.project_name)
                )
            else:
                logger.info(f"Request {request_id}: no frameworks requested")

            step = WorkflowStep.TEMPLATE_RESOURCE_CREATION
            await self._enter(request_id, state, step)
            result = await self._bounded(
                step,
                self._runner.execute(
                    "template",
                    request.template_name,
                    request.project_name,
                    request.flattened_parameters(),
                    source_control=adapter,
                ),
            )

            state.succeed(result.outputs or {})
            await self._repository.save(request_id, state)
            compensations.clear()
            logger.info(f"Request {request_id}: project '{request.project_name}' created")
        except Exception as exc:
            message = exc.message if isinstance(exc, ProvisionerError) else str(exc)
            logger.error(
                f"Request {request_id} failed at {state.current_step.value}: {message}"
            )
            state.fail(message, exc)
            await self._repository.save(request_id, state)
            failed = await compensations.run()
            if failed:
                logger.warning(
                    f"Request {request_id}: compensations left undone: {', '.join(failed)}"
                )
        finally:
            if adapter is not None:
                await adapter.aclose()
        return state
