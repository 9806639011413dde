"""Subprocess helpers shared by the scaffold and engine runners."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


async def kill_process(process: asyncio.subprocess.Process) -> None:
    """Kill ``process`` if it is still running and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            # Exited between the check and the signal.
            pass
        logger.warning(f"Killed process {process.pid} after cancellation")
    await process.wait()
