"""Helpers for the engine project manifest and per-stack files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from ..constants import MANIFEST_FILES

logger = logging.getLogger(__name__)


def read_project_namespace(workdir: Path) -> Optional[str]:
    """Return the ``name:`` declared by the project manifest, if any."""
    for filename in MANIFEST_FILES:
        manifest = workdir / filename
        if not manifest.is_file():
            continue
        with open(manifest, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        name = data.get("name") if isinstance(data, dict) else None
        if name:
            return str(name).strip()
    return None


def stack_state_file(workdir: Path, stack_name: str) -> Path:
    return workdir / f"Pulumi.{stack_name}.yaml"


def remove_stack_state_file(workdir: Path, stack_name: str) -> bool:
    """Delete the local stack file; a missing file is not an error."""
    path = stack_state_file(workdir, stack_name)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.debug(f"Removed local stack file {path}")
    return True
