"""Compensating actions for partially completed workflows."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Tuple

logger = logging.getLogger(__name__)

CompensatingAction = Callable[[], Awaitable[None]]


class CompensationLog:
    """Ordered record of undo actions, executed last-in first-out."""

    def __init__(self) -> None:
        self._actions: List[Tuple[str, CompensatingAction]] = []

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def descriptions(self) -> List[str]:
        return [description for description, _ in self._actions]

    def add(self, description: str, action: CompensatingAction) -> None:
        self._actions.append((description, action))

    def clear(self) -> None:
        self._actions.clear()

    async def run(self) -> List[str]:
        """Execute every action in reverse order.

        A failing action is logged and does not stop the remaining ones.
        Returns the descriptions of the actions that failed.
        """
        failed: List[str] = []
        while self._actions:
            description, action = self._actions.pop()
            try:
                await action()
                logger.info(f"Compensation '{description}' completed")
            except Exception as exc:
                logger.error(f"Compensation '{description}' failed: {exc}")
                failed.append(description)
        return failed
