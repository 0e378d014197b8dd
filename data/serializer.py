"""Object stream persistence: serializer and version-tolerant deserializer."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, BinaryIO

from configs.loader import DeserializerConfig, apply_config
from core.descriptor_resolver import DescriptorResolver
from core.fingerprint_registry import FingerprintRegistry
from core.type_registry import ImportTypeRegistry, TypeRegistry
from streaming.object_reader import ObjectStreamReader
from streaming.object_writer import ObjectStreamWriter

LOGGER = logging.getLogger(__name__)


class ObjectSerializer:
    """Writes object graphs to streams, bytes or files."""

    def __init__(self, type_registry: TypeRegistry | None = None) -> None:
        self.type_registry = type_registry if type_registry is not None else ImportTypeRegistry()

    def serialize(self, value: Any, stream: BinaryIO) -> None:
        ObjectStreamWriter(stream, self.type_registry).write_object(value)

    def dumps(self, value: Any) -> bytes:
        buffer = io.BytesIO()
        self.serialize(value, buffer)
        return buffer.getvalue()

    def save(self, value: Any, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_bytes(self.dumps(value))
        tmp_path.replace(path)
        LOGGER.debug("Saved %s to %s", type(value).__name__, path)


class VersionTolerantDeserializer:
    """Reads object streams, accepting more than one fingerprint per type.

    Example::

        deser = VersionTolerantDeserializer()
        deser.allow(MessageHistory, 1426799817181873282)
        deser.allow(MessageHistory, -2340400235574314134)
        history = deser.load(Path("history.vtos"))
    """

    def __init__(
        self,
        type_registry: TypeRegistry | None = None,
        fingerprint_registry: FingerprintRegistry | None = None,
    ) -> None:
        self.resolver = DescriptorResolver(
            fingerprints=fingerprint_registry,
            types=type_registry if type_registry is not None else ImportTypeRegistry(),
        )

    @classmethod
    def from_config(
        cls,
        config: DeserializerConfig,
        type_registry: TypeRegistry | None = None,
    ) -> VersionTolerantDeserializer:
        deserializer = cls(type_registry=type_registry)
        apply_config(config, deserializer.fingerprints)
        return deserializer

    @property
    def fingerprints(self) -> FingerprintRegistry:
        return self.resolver.fingerprints

    def allow(self, type_or_identity: type | str, fingerprint: int | str) -> None:
        """Allow ``fingerprint`` as an alternate for ``type_or_identity``.

        A class is keyed by the identity the type registry writes for it, so
        classes registered under an alias are matched by that alias.
        """
        if isinstance(type_or_identity, type):
            type_or_identity = self.resolver.types.identity_for(type_or_identity)
        self.fingerprints.allow(type_or_identity, fingerprint)

    def deserialize(self, stream: BinaryIO | bytes) -> Any:
        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(bytes(stream))
        value = ObjectStreamReader(stream, resolver=self.resolver).read_object()
        LOGGER.debug("Deserialized %s", type(value).__name__)
        return value

    def load(self, path: Path) -> Any:
        with Path(path).open("rb") as fh:
            return self.deserialize(fh)
