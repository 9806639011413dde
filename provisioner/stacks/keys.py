"""Namespaced stack configuration keys."""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import ENGINE_INTERNAL_NAMESPACE


@dataclass(frozen=True)
class NamespacedKey:
    """A stack configuration key such as ``myproject:app.framework``."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, raw: str, default_namespace: str) -> "NamespacedKey":
        """Split ``ns:name``; keys without a namespace take ``default_namespace``."""
        namespace, sep, name = raw.partition(":")
        if not sep:
            return cls(default_namespace, raw)
        return cls(namespace, name)

    @property
    def qualified(self) -> str:
        return f"{self.namespace}:{self.name}"

    @property
    def is_engine_internal(self) -> bool:
        return self.namespace == ENGINE_INTERNAL_NAMESPACE

    def belongs_to(self, namespace: str) -> bool:
        return self.namespace == namespace

    def __str__(self) -> str:
        return self.qualified
