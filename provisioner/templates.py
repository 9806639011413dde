"""Catalog of available project templates."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .errors import NotFoundError

logger = logging.getLogger(__name__)

DESCRIPTOR_FILES = ("template.yaml", "template.yml")


class TemplateResource(BaseModel):
    """A resource provisioned by a template."""

    type: str
    name: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class TemplateDescriptor(BaseModel):
    """Template metadata exposed to clients."""

    name: str
    description: str = ""
    version: str = "1.0.0"
    kind: str = "template"
    resources: List[TemplateResource] = Field(default_factory=list)


class TemplateCatalog:
    """Enumerate templates under ``<programs_dir>/templates``."""

    def __init__(self, programs_dir: Path | str) -> None:
        self.templates_dir = Path(programs_dir) / "templates"

    def _load(self, template_dir: Path) -> Optional[TemplateDescriptor]:
        for filename in DESCRIPTOR_FILES:
            descriptor = template_dir / filename
            if descriptor.is_file():
                with open(descriptor, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
                data.setdefault("name", template_dir.name)
                return TemplateDescriptor(**data)
        if (template_dir / "pulumi").is_dir():
            return TemplateDescriptor(name=template_dir.name)
        return None

    def list(self) -> List[TemplateDescriptor]:
        if not self.templates_dir.is_dir():
            logger.warning(f"Templates directory {self.templates_dir} does not exist")
            return []
        templates = []
        for template_dir in sorted(p for p in self.templates_dir.iterdir() if p.is_dir()):
            descriptor = self._load(template_dir)
            if descriptor is not None:
                templates.append(descriptor)
        return templates

    def get(self, name: str) -> TemplateDescriptor:
        for descriptor in self.list():
            if descriptor.name == name:
                return descriptor
        raise NotFoundError(f"Template '{name}' not found", status_code=404)
