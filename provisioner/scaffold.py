"""Framework scaffold generation via external generator tools."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Tuple

from .contracts import FrameworkType
from .errors import ScaffoldError, ValidationError
from .process import kill_process

logger = logging.getLogger(__name__)

# Closed mapping; generator arguments are fixed and never built from request data.
FRAMEWORK_COMMANDS: Mapping[FrameworkType, Tuple[str, Tuple[str, ...]]] = {
    FrameworkType.DOTNET: ("dotnet", ("new", "webapi", "-n", "app")),
    FrameworkType.REACT: (
        "npm",
        ("create", "vite@latest", "app", "--", "--template", "react-ts"),
    ),
    FrameworkType.VUE: ("npm", ("create", "vue@latest", "app", "--", "--default")),
    FrameworkType.NUXT: ("npx", ("--yes", "nuxi", "init", "app")),
    FrameworkType.JAVA_SPRING: (
        "spring",
        ("init", "app", "--build=maven", "--java-version=17"),
    ),
}


def command_for(framework: FrameworkType) -> Tuple[str, ...]:
    """Full argv used to scaffold ``framework``."""
    if not isinstance(framework, FrameworkType):
        raise ValidationError(f"Unsupported framework: {framework!r}")
    executable, args = FRAMEWORK_COMMANDS[framework]
    return (executable, *args)


async def generate(framework: FrameworkType, target_dir: Path | str) -> None:
    """Run the generator for ``framework`` inside ``target_dir``.

    Raises:
        ScaffoldError: The generator could not be started or exited non-zero.
    """
    argv = command_for(framework)
    target = Path(target_dir)
    target.mkdir(parents=True, exist_ok=True)
    logger.info(f"Scaffolding {framework.value} into {target}")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(target),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise ScaffoldError(argv, 127, str(exc)) from exc

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        await kill_process(process)
        raise
    if stdout:
        logger.debug(stdout.decode(errors="replace"))
    if process.returncode != 0:
        raise ScaffoldError(argv, process.returncode, stderr.decode(errors="replace"))
