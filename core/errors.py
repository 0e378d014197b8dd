"""Exception taxonomy for object stream encoding and decoding."""

from __future__ import annotations

from typing import Iterable


class ObjectStreamError(Exception):
    """Base class for every object stream failure."""


class UnknownTypeError(ObjectStreamError, LookupError):
    """Raised when a stream names a type the running program does not have."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"Unknown type '{identity}': no local type is registered under that identity.")
        self.identity = identity


class SchemaIncompatibleError(ObjectStreamError, ValueError):
    """Raised by the stream reader when a descriptor cannot be reconciled with the local type."""

    def __init__(
        self,
        identity: str,
        stream_fingerprint: int,
        local_fingerprint: int | None,
        allowed: Iterable[int] = (),
    ) -> None:
        self.identity = identity
        self.stream_fingerprint = stream_fingerprint
        self.local_fingerprint = local_fingerprint
        self.allowed = tuple(sorted(set(allowed)))
        if local_fingerprint is None:
            detail = "local type does not support structural introspection"
        else:
            detail = f"local fingerprint = {local_fingerprint}"
        allowed_text = ", ".join(str(value) for value in self.allowed) or "<none>"
        super().__init__(
            f"Local type '{identity}' incompatible: stream fingerprint = {stream_fingerprint}, "
            f"{detail}, allowed alternates: {allowed_text}."
        )


class StreamFormatError(ObjectStreamError, ValueError):
    """Raised for corrupt, truncated or unsupported stream bytes."""


class SerializationError(ObjectStreamError, TypeError):
    """Raised when a value cannot be encoded into an object stream."""
