"""Provisioner: repository, scaffold and infrastructure provisioning workflows."""

__version__ = "0.1.0"

from .contracts import (  # noqa: E402
    FrameworkType,
    ProjectCreationRequest,
    StackExecutionResult,
    WorkflowState,
    WorkflowStatus,
    WorkflowStep,
)
from .persistence import get_job_repository, get_repository  # noqa: E402
from .provision import ResourceProvisioner  # noqa: E402
from .sourcecontrol import get_source_control  # noqa: E402
from .stacks import StackRunner  # noqa: E402
from .workflow import ProjectCreationWorkflow  # noqa: E402

__all__ = [
    "FrameworkType",
    "ProjectCreationRequest",
    "ProjectCreationWorkflow",
    "ResourceProvisioner",
    "StackExecutionResult",
    "StackRunner",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowStep",
    "get_job_repository",
    "get_repository",
    "get_source_control",
]
