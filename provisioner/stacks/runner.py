"""Run a named infrastructure stack for a template, platform or resource.

One invocation walks the stack through::

    Located -> DependenciesEnsured -> StackSelected -> ConfigReconciled
        -> Applied -> OutputsCaptured | DestroyedOnFailure -> LocalStateCleaned

The local stack file is removed on every exit path; remote engine state is
left to the engine's own backend.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import httpx

from ..config import ProvisionerConfig, load_config
from ..contracts import StackExecutionResult, stack_identity
from ..credentials import is_secret_key
from ..errors import (
    DependencyInstallError,
    NotFoundError,
    ProvisionerError,
    StackExecutionError,
    extract_status_code,
)
from ..sourcecontrol import SourceControlAdapter
from .engine import InfrastructureEngine, PulumiEngine, Stack
from .keys import NamespacedKey
from .manifest import read_project_namespace, remove_stack_state_file

logger = logging.getLogger(__name__)

_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Working directory candidates per kind, relative to the programs directory.
_LAYOUTS: Dict[str, tuple[tuple[str, ...], ...]] = {
    "template": (("templates", "{id}", "pulumi"), ("project", "templates", "{id}")),
    "platform": (("platforms", "{id}"), ("platform", "{id}")),
    "resource": (("resources", "{id}"),),
}


def normalize_config_value(value: Any) -> str:
    """Booleans become lowercase ``true``/``false``; anything else its string form."""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = "" if value is None else str(value)
    if text.strip().lower() in ("true", "false"):
        return text.strip().lower()
    return text


class StackRunner:
    """Execute infrastructure programs as isolated, named stacks."""

    def __init__(
        self,
        programs_dir: Optional[Path | str] = None,
        engine: Optional[InfrastructureEngine] = None,
        config: Optional[ProvisionerConfig] = None,
    ) -> None:
        self.config = config or load_config()
        self.programs_dir = Path(programs_dir or self.config.programs_dir).resolve()
        self.engine = engine or PulumiEngine(self.config.engine)

    # ------------------------------------------------------------------
    # Located
    def locate(self, kind: str, identifier: str) -> Path:
        """Working directory for ``identifier`` of ``kind``.

        Raises:
            NotFoundError: Unknown kind, unsafe identifier or missing directory.
        """
        layouts = _LAYOUTS.get(kind)
        if layouts is None:
            raise NotFoundError(f"Unknown program kind: {kind}")
        if not identifier or not _SAFE_IDENTIFIER.match(identifier):
            raise NotFoundError(f"Invalid {kind} identifier: '{identifier}'")

        for layout in layouts:
            candidate = self.programs_dir.joinpath(
                *(part.format(id=identifier) for part in layout)
            )
            if candidate.is_dir():
                return candidate
        raise NotFoundError(f"No {kind} program found for '{identifier}'")

    # ------------------------------------------------------------------
    # DependenciesEnsured
    async def ensure_dependencies(self, workdir: Path) -> None:
        if (workdir / self.config.engine.dependency_dir).is_dir():
            return
        result = await self.engine.install(workdir)
        if not result.ok:
            raise DependencyInstallError(str(workdir), result.stderr)

    # ------------------------------------------------------------------
    # ConfigReconciled
    async def reconcile_config(
        self, stack: Stack, namespace: str, desired: Mapping[str, Any]
    ) -> Dict[str, str]:
        """Make the stack's configuration in ``namespace`` match ``desired``.

        Unqualified keys are qualified with ``namespace``. Persisted keys of the
        same namespace that are no longer desired are removed, so values from a
        previous run cannot leak into this one. Other namespaces and
        engine-internal keys are left alone.

        Returns the applied configuration keyed by qualified key.
        """
        wanted: Dict[NamespacedKey, str] = {
            NamespacedKey.parse(raw, namespace): normalize_config_value(value)
            for raw, value in desired.items()
        }
        wanted_names = {key.name for key in wanted if key.belongs_to(namespace)}

        existing = await self.engine.get_config(stack)
        for raw in existing:
            key = NamespacedKey.parse(raw, namespace)
            if key.is_engine_internal or not key.belongs_to(namespace):
                continue
            if key.name not in wanted_names:
                logger.info(f"Removing stale config key {key} from stack {stack.name}")
                await self.engine.remove_config(stack, key.qualified)

        applied: Dict[str, str] = {}
        for key, value in wanted.items():
            secret = is_secret_key(key.name)
            if not secret and existing.get(key.qualified) == value:
                applied[key.qualified] = value
                continue
            await self.engine.set_config(stack, key.qualified, value, secret=secret)
            applied[key.qualified] = value
        return applied

    # ------------------------------------------------------------------
    async def _destroy_quietly(self, stack: Stack) -> None:
        """Refresh then destroy; failures are logged, never raised."""
        try:
            await self.engine.refresh(stack)
        except Exception as exc:
            logger.warning(f"Refresh of stack {stack.name} failed before destroy: {exc}")
        try:
            await self.engine.destroy(stack)
            logger.info(f"Destroyed stack {stack.name} after failed update")
        except Exception as exc:
            logger.error(f"Destroy of stack {stack.name} failed: {exc}")

    @staticmethod
    def _wrap(exc: Exception, resource_type: str, project_name: str) -> StackExecutionError:
        message = f"Failed to create {resource_type} for project '{project_name}': {exc}"
        status = getattr(exc, "status_code", None)
        extracted = extract_status_code(str(exc))
        if extracted is not None:
            status = extracted[0]
        return StackExecutionError(message, status_code=status or 500)

    async def execute(
        self,
        kind: str,
        identifier: str,
        project_name: str,
        parameters: Mapping[str, Any],
        source_control: Optional[SourceControlAdapter] = None,
        resource_type: Optional[str] = None,
    ) -> StackExecutionResult:
        """Bring up the stack for ``identifier`` and return its outputs.

        Raises:
            NotFoundError: No working directory for ``identifier``.
            DependencyInstallError: The install step failed.
            StackExecutionError: Stack selection, configuration, apply or the
                infrastructure source push failed.
        """
        resource_type = resource_type or identifier
        workdir = self.locate(kind, identifier)
        await self.ensure_dependencies(workdir)

        stack = Stack(name=stack_identity(project_name, resource_type), workdir=workdir)
        namespace = read_project_namespace(workdir) or identifier
        desired: Dict[str, Any] = dict(parameters)
        desired["Name"] = project_name
        logger.info(f"Running stack {stack.name} in {workdir} (namespace {namespace})")

        try:
            try:
                await self.engine.select_stack(stack)
                await self.reconcile_config(stack, namespace, desired)
            except ProvisionerError as exc:
                raise self._wrap(exc, resource_type, project_name) from exc

            try:
                await self.engine.up(stack)
            except asyncio.CancelledError:
                # A cancelled apply is a failed apply; destroy before unwinding.
                logger.error(f"Update of stack {stack.name} was cancelled")
                await asyncio.shield(self._destroy_quietly(stack))
                raise
            except Exception as exc:
                logger.error(f"Update of stack {stack.name} failed: {exc}")
                await self._destroy_quietly(stack)
                raise self._wrap(exc, resource_type, project_name) from exc

            raw_outputs = await self.engine.outputs(stack)
            outputs = {k: v for k, v in raw_outputs.items() if v is not None}

            if source_control is not None:
                pushable = {
                    NamespacedKey.parse(k, namespace).name: normalize_config_value(v)
                    for k, v in parameters.items()
                }
                try:
                    await source_control.push_infrastructure(workdir, pushable, project_name)
                except (ProvisionerError, httpx.HTTPError, OSError) as exc:
                    raise self._wrap(exc, resource_type, project_name) from exc

            return StackExecutionResult(
                name=project_name,
                resource_type=resource_type,
                status_code=200,
                message=f"Stack {stack.name} is up to date",
                outputs=outputs,
            )
        finally:
            remove_stack_state_file(workdir, stack.name)

    async def run(
        self,
        kind: str,
        identifier: str,
        project_name: str,
        parameters: Mapping[str, Any],
        resource_type: Optional[str] = None,
    ) -> StackExecutionResult:
        """Like :meth:`execute` but reports failures as a result instead of raising."""
        resource_type = resource_type or identifier
        try:
            return await self.execute(
                kind, identifier, project_name, parameters, resource_type=resource_type
            )
        except ProvisionerError as exc:
            return StackExecutionResult(
                name=project_name,
                resource_type=resource_type,
                status_code=exc.status_code,
                message=exc.message,
            )
