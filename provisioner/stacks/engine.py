"""Infrastructure engine interface and the Pulumi CLI implementation."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..config import EngineConfig
from ..errors import EngineCommandError
from ..process import kill_process

logger = logging.getLogger(__name__)
engine_logger = logging.getLogger("provisioner.stacks.engine")


@dataclass(frozen=True)
class Stack:
    """A named stack bound to the working directory holding its program."""

    name: str
    workdir: Path


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class InfrastructureEngine(metaclass=abc.ABCMeta):
    """Operations the stack runner needs from a declarative IaC engine."""

    @abc.abstractmethod
    async def install(self, workdir: Path) -> CommandResult:
        """Install the program's dependencies into ``workdir``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def select_stack(self, stack: Stack) -> None:
        """Create the stack if missing and make it current."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_config(self, stack: Stack) -> Dict[str, Optional[str]]:
        """Persisted configuration keyed by fully qualified key."""
        raise NotImplementedError

    @abc.abstractmethod
    async def set_config(self, stack: Stack, key: str, value: str, secret: bool = False) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def remove_config(self, stack: Stack, key: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def up(self, stack: Stack) -> None:
        """Apply the stack, streaming engine output to the log."""
        raise NotImplementedError

    @abc.abstractmethod
    async def outputs(self, stack: Stack) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def refresh(self, stack: Stack) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def destroy(self, stack: Stack) -> None:
        raise NotImplementedError


async def _pipe_to_log(stream: asyncio.StreamReader, level: int, sink: List[str]) -> None:
    async for raw in stream:
        line = raw.decode(errors="replace").rstrip()
        sink.append(line)
        if line:
            engine_logger.log(level, line)


class PulumiEngine(InfrastructureEngine):
    """Drive the ``pulumi`` CLI, one subprocess per command."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    def _env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.setdefault("PULUMI_SKIP_UPDATE_CHECK", "true")
        if self.config.passphrase is not None:
            env["PULUMI_CONFIG_PASSPHRASE"] = self.config.passphrase
        return env

    async def _exec(
        self,
        argv: Sequence[str],
        cwd: Path,
        stream: bool = False,
        stdin_data: Optional[str] = None,
    ) -> CommandResult:
        """Run ``argv`` in ``cwd``; a cancelled caller kills the child process."""
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                env=self._env(),
                stdin=(
                    asyncio.subprocess.PIPE
                    if stdin_data is not None
                    else asyncio.subprocess.DEVNULL
                ),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            return CommandResult(127, "", str(exc))

        try:
            if stream:
                out: List[str] = []
                err: List[str] = []
                await asyncio.gather(
                    _pipe_to_log(process.stdout, logging.INFO, out),
                    _pipe_to_log(process.stderr, logging.WARNING, err),
                )
                await process.wait()
                return CommandResult(process.returncode, "\n".join(out), "\n".join(err))

            payload = stdin_data.encode("utf-8") if stdin_data is not None else None
            stdout, stderr = await process.communicate(payload)
        except asyncio.CancelledError:
            await kill_process(process)
            raise
        return CommandResult(
            process.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    async def _pulumi(
        self, stack: Stack, *args: str, stream: bool = False, stdin_data: Optional[str] = None
    ) -> CommandResult:
        argv = [self.config.binary, *args, "--stack", stack.name, "--non-interactive"]
        result = await self._exec(argv, stack.workdir, stream=stream, stdin_data=stdin_data)
        if not result.ok:
            raise EngineCommandError([self.config.binary, *args], result.exit_code, result.stderr)
        return result

    async def install(self, workdir: Path) -> CommandResult:
        logger.info(f"Installing engine dependencies in {workdir}")
        return await self._exec(self.config.install_command, workdir)

    async def select_stack(self, stack: Stack) -> None:
        await self._pulumi(stack, "stack", "select", "--create")

    async def get_config(self, stack: Stack) -> Dict[str, Optional[str]]:
        result = await self._pulumi(stack, "config", "--json")
        data = json.loads(result.stdout or "{}")
        return {
            key: (entry.get("value") if isinstance(entry, dict) else entry)
            for key, entry in data.items()
        }

    async def set_config(self, stack: Stack, key: str, value: str, secret: bool = False) -> None:
        # Values go through stdin, never argv.
        mode = "--secret" if secret else "--plaintext"
        await self._pulumi(stack, "config", "set", mode, "--", key, stdin_data=value)

    async def remove_config(self, stack: Stack, key: str) -> None:
        await self._pulumi(stack, "config", "rm", key)

    async def up(self, stack: Stack) -> None:
        await self._pulumi(stack, "up", "--yes", "--skip-preview", stream=True)

    async def outputs(self, stack: Stack) -> Dict[str, Any]:
        result = await self._pulumi(stack, "stack", "output", "--json", "--show-secrets")
        return json.loads(result.stdout or "{}")

    async def refresh(self, stack: Stack) -> None:
        await self._pulumi(stack, "refresh", "--yes", "--skip-preview", stream=True)

    async def destroy(self, stack: Stack) -> None:
        await self._pulumi(stack, "destroy", "--yes", "--skip-preview", stream=True)
