"""Decides which descriptor the stream reader uses for each class record."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.descriptors import TypeDescriptor
from core.errors import UnknownTypeError
from core.fingerprint_registry import FingerprintRegistry
from core.type_registry import ImportTypeRegistry, TypeRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolution: the descriptor to use and how it was chosen."""

    descriptor: TypeDescriptor
    substituted: bool
    local: TypeDescriptor | None


class DescriptorResolver:
    """Substitutes the local descriptor for operator-approved fingerprint mismatches.

    Anything the fingerprint registry does not vouch for passes through
    unchanged, so the reader's own version check behaves exactly as if no
    resolver were installed.
    """

    def __init__(
        self,
        fingerprints: FingerprintRegistry | None = None,
        types: TypeRegistry | None = None,
    ) -> None:
        self.fingerprints = fingerprints if fingerprints is not None else FingerprintRegistry()
        self.types = types if types is not None else ImportTypeRegistry()

    def resolve(self, stream_descriptor: TypeDescriptor) -> TypeDescriptor:
        return self.explain(stream_descriptor).descriptor

    def explain(self, stream_descriptor: TypeDescriptor) -> Resolution:
        identity = stream_descriptor.identity
        if self.types.lookup_type(identity) is None:
            raise UnknownTypeError(identity)

        local = self.types.local_descriptor_for(identity)
        if local is None:
            return Resolution(descriptor=stream_descriptor, substituted=False, local=None)

        if stream_descriptor.fingerprint == local.fingerprint:
            return Resolution(descriptor=stream_descriptor, substituted=False, local=local)

        if stream_descriptor.fingerprint in self.fingerprints.alternates_for(identity):
            LOGGER.debug(
                "Substituting local descriptor for %s: stream fingerprint %d -> local %d",
                identity,
                stream_descriptor.fingerprint,
                local.fingerprint,
            )
            return Resolution(descriptor=local, substituted=True, local=local)

        return Resolution(descriptor=stream_descriptor, substituted=False, local=local)
