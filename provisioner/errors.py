"""Error taxonomy for provisioning workflows.

Every error carries an HTTP-like ``status_code`` so the transport layer can
surface it without knowing which step raised it.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence, Tuple

_STATUS_PATTERNS = (
    re.compile(r"status\s*=\s*(?P<code>[1-5]\d{2})\b(?P<detail>.*)", re.IGNORECASE | re.DOTALL),
    re.compile(r"status\s+code[:\s]+(?P<code>[1-5]\d{2})\b(?P<detail>.*)", re.IGNORECASE | re.DOTALL),
    re.compile(r"\"status\"\s*:\s*(?P<code>[1-5]\d{2})\b(?P<detail>.*)", re.IGNORECASE | re.DOTALL),
    re.compile(r"\bHTTP\s*/?\s*(?:\d\.\d\s+)?(?P<code>[1-5]\d{2})\b(?P<detail>.*)", re.DOTALL),
    re.compile(
        r"\b(?P<code>[45]\d{2})\s+(?P<detail>(?:Bad Request|Unauthorized|Forbidden|Not Found|"
        r"Conflict|Unprocessable Entity|Too Many Requests|Internal Server Error)\b.*)",
        re.IGNORECASE | re.DOTALL,
    ),
)


def extract_status_code(text: str) -> Optional[Tuple[int, str]]:
    """Find an HTTP status embedded in provider error text.

    Returns ``(status, detail)`` or ``None`` when no status is present.
    """
    if not text:
        return None
    for pattern in _STATUS_PATTERNS:
        match = pattern.search(text)
        if match:
            detail = match.group("detail").strip(" .:-\n\t") or text.strip()
            return int(match.group("code")), detail
    return None


class ProvisionerError(Exception):
    """Base error for all provisioning failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ProvisionerError):
    """Malformed or missing request fields."""

    status_code = 400


class CredentialError(ProvisionerError):
    """Missing or placeholder-valued configuration."""

    status_code = 400


class UnsupportedPlatformError(CredentialError):
    """Platform kind has no source-control adapter."""


class NotFoundError(ProvisionerError):
    """Unknown template, platform or workflow identifier."""

    status_code = 400


class PlatformError(ProvisionerError):
    """A source-hosting provider rejected a request."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail, status_code=status_code)
        self.detail = detail

    @classmethod
    def from_text(cls, text: str) -> "PlatformError":
        extracted = extract_status_code(text)
        if extracted is None:
            return cls(500, text)
        return cls(extracted[0], extracted[1])


class ScaffoldError(ProvisionerError):
    """A project generator exited with a non-zero status."""

    def __init__(self, command: Sequence[str], exit_code: int, stderr: str) -> None:
        super().__init__(
            f"Command failed: {' '.join(command)} (exit code {exit_code})\n{stderr}".rstrip()
        )
        self.command = tuple(command)
        self.exit_code = exit_code
        self.stderr = stderr


class EngineCommandError(ProvisionerError):
    """An infrastructure engine subprocess exited with a non-zero status."""

    def __init__(self, args: Sequence[str], exit_code: int, stderr: str) -> None:
        super().__init__(
            f"Engine command '{' '.join(args)}' failed with exit code {exit_code}: {stderr.strip()}"
        )
        self.args_list = tuple(args)
        self.exit_code = exit_code
        self.stderr = stderr


class DependencyInstallError(ProvisionerError):
    """The engine dependency bootstrap step failed."""

    def __init__(self, workdir: str, stderr: str) -> None:
        super().__init__(f"Dependency installation failed in {workdir}: {stderr.strip()}")
        self.stderr = stderr


class StackExecutionError(ProvisionerError):
    """Applying an infrastructure stack failed."""


class StepTimeoutError(ProvisionerError):
    """A workflow step exceeded its configured timeout."""

    status_code = 504
