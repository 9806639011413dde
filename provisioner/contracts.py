"""Request, state and result contracts for provisioning workflows."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

_UNSAFE_STACK_CHARS = re.compile(r"[^a-z0-9\-]")


def sanitize_stack_name(text: str) -> str:
    """Lowercase ``text`` and replace anything outside ``[a-z0-9-]`` with ``-``."""
    return _UNSAFE_STACK_CHARS.sub("-", text.lower())


def stack_identity(project_name: str, resource_type: str) -> str:
    """Deterministic stack name for a project and resource/template type."""
    return sanitize_stack_name(f"{project_name}-{resource_type}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrameworkType(str, Enum):
    """Application frameworks that can be scaffolded into a repository."""

    DOTNET = "dotnet"
    REACT = "React"
    VUE = "Vue"
    NUXT = "Nuxt"
    JAVA_SPRING = "JavaSpring"

    @classmethod
    def parse(cls, value: Any) -> Optional["FrameworkType"]:
        """Case-insensitive lookup; ``None`` for unknown values."""
        if value is None:
            return None
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class WorkflowStep(str, Enum):
    """Ordered steps of the project creation workflow."""

    INPUT_VERIFICATION = "InputVerification"
    GIT_SESSION_SETUP = "GitSessionSetup"
    GIT_REPOSITORY_CREATION = "GitRepositoryCreation"
    FRAMEWORK_INITIALIZATION = "FrameworkOnGitRepositoryInitialization"
    TEMPLATE_RESOURCE_CREATION = "PulumiTemplateResourceCreation"
    SUCCESS = "Success"

    @property
    def order(self) -> int:
        return list(WorkflowStep).index(self)


class WorkflowStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILED = "Failed"


class PlatformDescriptor(CamelModel):
    """Target source-hosting platform for a project."""

    type: str = ""
    name: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> str:
        return self.type.strip().lower()


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def flatten_parameters(parameters: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten nested parameter maps into dotted keys with string values."""
    flat: Dict[str, str] = {}
    for key, value in parameters.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_parameters(value, dotted))
        else:
            flat[dotted] = _stringify(value)
    return flat


class ProjectCreationRequest(CamelModel):
    """Incoming request to provision a complete project."""

    template_name: str = ""
    project_name: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    platform: Optional[PlatformDescriptor] = None

    def flattened_parameters(self) -> Dict[str, str]:
        return flatten_parameters(self.parameters)

    def requested_frameworks(self) -> List[FrameworkType]:
        """Frameworks named by any parameter whose key mentions ``framework``."""
        frameworks: List[FrameworkType] = []
        for key, value in self.flattened_parameters().items():
            if "framework" not in key.lower():
                continue
            framework = FrameworkType.parse(value)
            if framework is not None and framework not in frameworks:
                frameworks.append(framework)
        return frameworks


class RequestReceivedResponse(CamelModel):
    project_name: str
    request_id: int


class RepoHandle(BaseModel):
    """Repository created or resolved on a source-hosting platform."""

    name: str
    url: str
    default_branch: str = "main"
    owner: Optional[str] = None
    project_id: Optional[int] = None
    created: bool = True

    def outputs(self) -> Dict[str, Any]:
        return {"gitRepositoryUrl": self.url, "gitRepositoryName": self.name}


class StackExecutionResult(CamelModel):
    """Outcome of running one infrastructure stack."""

    name: str
    resource_type: str
    status_code: int
    message: str = ""
    outputs: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status_code == 200


class WorkflowState(CamelModel):
    """Mutable per-request record polled by callers."""

    status: WorkflowStatus = WorkflowStatus.IN_PROGRESS
    current_step: WorkflowStep = WorkflowStep.INPUT_VERIFICATION
    error_message: str = ""
    outputs: Dict[str, Any] = Field(default_factory=dict)
    steps_completed: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    _error: Optional[Exception] = PrivateAttr(default=None)

    @property
    def error(self) -> Optional[Exception]:
        """Exception that failed the workflow, kept in-process only."""
        return self._error

    @property
    def is_terminal(self) -> bool:
        return self.status is not WorkflowStatus.IN_PROGRESS

    def advance(self, step: WorkflowStep) -> None:
        """Move forward to ``step``; never backwards and never after termination."""
        if self.is_terminal:
            raise RuntimeError(f"Cannot advance a {self.status.value} workflow")
        if step.order < self.current_step.order:
            raise RuntimeError(
                f"Cannot move from {self.current_step.value} back to {step.value}"
            )
        self.steps_completed = step.order
        self.current_step = step
        self.updated_at = _utcnow()

    def fail(self, message: str, error: Optional[Exception] = None) -> None:
        self.status = WorkflowStatus.FAILED
        self.error_message = message
        self._error = error
        self.updated_at = _utcnow()

    def succeed(self, outputs: Dict[str, Any]) -> None:
        self.advance(WorkflowStep.SUCCESS)
        self.outputs.update(outputs)
        self.status = WorkflowStatus.SUCCESS
        self.updated_at = _utcnow()


class TemplateRequest(CamelModel):
    """Request to provision one standalone resource."""

    name: str = ""
    resource_type: str = ""
    framework: Optional[str] = None
    parameters: Dict[str, str] = Field(default_factory=dict)


class JobStatus(str, Enum):
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class Job(BaseModel):
    """Status of a single-resource provisioning job."""

    status: JobStatus = JobStatus.RUNNING
    outputs: Optional[Any] = None
    error: Optional[str] = None
