"""Type descriptors: one schema version of one type, as seen locally or in a stream."""

from __future__ import annotations

import dataclasses
import hashlib
from dataclasses import dataclass
from typing import Any


FINGERPRINT_MIN = -(2**63)
FINGERPRINT_MAX = 2**63 - 1


@dataclass(frozen=True)
class TypeDescriptor:
    """Immutable identity + fingerprint + ordered field schema."""

    identity: str
    fingerprint: int
    field_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fingerprint", as_fingerprint(self.fingerprint))
        object.__setattr__(self, "field_names", tuple(str(name) for name in self.field_names))


def qualified_name(cls: type) -> str:
    """Return the stable ``module.QualName`` identity of ``cls``."""
    return f"{cls.__module__}.{cls.__qualname__}"


def identity_of(value: type | str) -> str:
    if isinstance(value, type):
        return qualified_name(value)
    if isinstance(value, str) and value:
        return value
    raise ValueError(f"Type identity must be a class or a non-empty string, got {value!r}.")


def as_fingerprint(value: Any) -> int:
    """Coerce ``value`` to a signed 64-bit fingerprint.

    Strings are parsed with base auto-detection, so ``"0x1f"`` and ``"-42"``
    are both accepted.
    """
    if isinstance(value, bool):
        raise ValueError(f"Fingerprint must be an integer, got {value!r}.")
    if isinstance(value, int):
        fingerprint = value
    elif isinstance(value, str):
        try:
            fingerprint = int(value.strip(), 0)
        except ValueError as exc:
            raise ValueError(f"Fingerprint must be an integer, got {value!r}.") from exc
    else:
        raise ValueError(f"Fingerprint must be an integer, got {value!r}.")
    if not FINGERPRINT_MIN <= fingerprint <= FINGERPRINT_MAX:
        raise ValueError(f"Fingerprint {fingerprint} is outside the signed 64-bit range.")
    return fingerprint


def default_fingerprint(identity: str, field_names: tuple[str, ...]) -> int:
    """Derive a fingerprint from the type identity and its field layout."""
    digest = hashlib.sha256()
    digest.update(identity.encode("utf-8"))
    for name in field_names:
        digest.update(b"\x00")
        digest.update(name.encode("utf-8"))
    return int.from_bytes(digest.digest()[:8], byteorder="big", signed=True)


def stream_fields(cls: type) -> tuple[str, ...] | None:
    """Return the ordered field names of ``cls`` or ``None`` if it is not introspectable."""
    declared = cls.__dict__.get("__stream_fields__")
    if declared is not None:
        return tuple(str(name) for name in declared)
    if dataclasses.is_dataclass(cls):
        return tuple(f.name for f in dataclasses.fields(cls))
    return None


def describe_type(cls: type, identity: str | None = None) -> TypeDescriptor | None:
    """Build the local descriptor for ``cls``.

    The fingerprint is ``cls.__stream_fingerprint__`` when the class itself
    declares one (it is not inherited), otherwise it is derived from the
    identity and field names.
    """
    field_names = stream_fields(cls)
    if field_names is None:
        return None
    name = identity or qualified_name(cls)
    declared = cls.__dict__.get("__stream_fingerprint__")
    if declared is None:
        fingerprint = default_fingerprint(name, field_names)
    else:
        fingerprint = as_fingerprint(declared)
    return TypeDescriptor(identity=name, fingerprint=fingerprint, field_names=field_names)
