"""Local type lookup by identity, isolated behind a small interface."""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod

from core.descriptors import TypeDescriptor, describe_type, identity_of, qualified_name


class TypeRegistry(ABC):
    """Resolves stream type identities to locally loaded classes."""

    @abstractmethod
    def lookup_type(self, identity: str) -> type | None:
        """Return the local class for ``identity`` or ``None`` if there is none."""

    def identity_for(self, cls: type) -> str:
        """Return the identity written to streams for instances of ``cls``."""
        return qualified_name(cls)

    def local_descriptor_for(self, identity: str) -> TypeDescriptor | None:
        """Return the current descriptor for ``identity``.

        ``None`` means either no local type exists or it cannot be introspected;
        use ``lookup_type`` to tell the two apart.
        """
        cls = self.lookup_type(identity)
        if cls is None:
            return None
        return describe_type(cls, identity)


class ImportTypeRegistry(TypeRegistry):
    """Finds ``module.QualName`` identities through ``importlib``.

    Looking up an identity imports the module it names, which runs that
    module's top-level code. Only decode streams from trusted producers with
    this registry; use ``MappingTypeRegistry`` to restrict the reachable types.
    """

    def lookup_type(self, identity: str) -> type | None:
        parts = identity.split(".")
        if not all(part.isidentifier() for part in parts):
            return None
        # Try the longest importable module prefix first.
        for split in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:split])
            try:
                module = importlib.import_module(module_name)
            except ImportError:
                continue
            target: object = module
            for attr in parts[split:]:
                target = getattr(target, attr, None)
                if target is None:
                    return None
            return target if isinstance(target, type) else None
        return None


class MappingTypeRegistry(TypeRegistry):
    """Explicit identity <-> class table, optionally backed by another registry."""

    def __init__(self, fallback: TypeRegistry | None = None) -> None:
        self._types: dict[str, type] = {}
        self._identities: dict[type, str] = {}
        self._fallback = fallback

    def register(self, cls: type, identity: type | str | None = None) -> str:
        """Register ``cls`` under ``identity`` (its qualified name by default).

        Several classes may share one identity, e.g. an old and a current
        version of the same type; lookups return the last one registered.
        """
        name = qualified_name(cls) if identity is None else identity_of(identity)
        self._types[name] = cls
        self._identities[cls] = name
        return name

    def lookup_type(self, identity: str) -> type | None:
        cls = self._types.get(identity)
        if cls is None and self._fallback is not None:
            return self._fallback.lookup_type(identity)
        return cls

    def identity_for(self, cls: type) -> str:
        name = self._identities.get(cls)
        if name is not None:
            return name
        if self._fallback is not None:
            return self._fallback.identity_for(cls)
        return qualified_name(cls)
