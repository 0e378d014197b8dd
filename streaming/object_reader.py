"""Decodes object streams back into live object graphs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator

from core.descriptor_resolver import DescriptorResolver
from core.descriptors import TypeDescriptor
from core.errors import SchemaIncompatibleError, StreamFormatError, UnknownTypeError
from core.type_registry import ImportTypeRegistry, TypeRegistry
from streaming import protocol


@dataclass(frozen=True)
class _ClassEntry:
    """Interned class record: the descriptor in use and the class it instantiates."""

    descriptor: TypeDescriptor
    cls: type


_PENDING = object()


class ObjectStreamReader:
    """Reads values written by ``ObjectStreamWriter``.

    Each class descriptor in the stream goes through ``resolver.resolve`` once;
    the returned descriptor is then checked against the local type and
    interned for every later record that references it.
    """

    def __init__(
        self,
        stream: BinaryIO,
        type_registry: TypeRegistry | None = None,
        resolver: DescriptorResolver | None = None,
    ) -> None:
        self._stream = stream
        if type_registry is None:
            type_registry = resolver.types if resolver is not None else ImportTypeRegistry()
        self._types = type_registry
        self._resolver = resolver
        self._handles: list[Any] = []
        self._header_read = False

    def read_object(self) -> Any:
        self._ensure_header()
        return self._read_top_level(self._read_tag())

    def iter_objects(self) -> Iterator[Any]:
        """Yield every top-level value until the stream is exhausted."""
        self._ensure_header()
        while True:
            first = self._stream.read(1)
            if not first:
                return
            yield self._read_top_level(first[0])

    def _read_top_level(self, tag: int) -> Any:
        try:
            return self._read_value(tag)
        except RecursionError as exc:
            raise StreamFormatError("Object stream nesting exceeds the interpreter recursion limit.") from exc

    def _ensure_header(self) -> None:
        if not self._header_read:
            protocol.read_header(self._stream)
            self._header_read = True

    def _read_tag(self) -> int:
        return protocol.read_exact(self._stream, 1)[0]

    def _remember(self, value: Any) -> int:
        self._handles.append(value)
        return len(self._handles) - 1

    def _lookup_handle(self, handle: int) -> Any:
        if not 0 <= handle < len(self._handles):
            raise StreamFormatError(f"Invalid back-reference handle {handle}.")
        value = self._handles[handle]
        if value is _PENDING:
            raise StreamFormatError(f"Back-reference to incomplete class descriptor {handle}.")
        return value

    def _read_value(self, tag: int) -> Any:
        stream = self._stream
        if tag == protocol.TAG_NULL:
            return None
        if tag == protocol.TAG_TRUE:
            return True
        if tag == protocol.TAG_FALSE:
            return False
        if tag == protocol.TAG_INT:
            return int(protocol.read_struct(stream, protocol.I64))
        if tag == protocol.TAG_BIGINT:
            size = int(protocol.read_struct(stream, protocol.U32))
            return protocol.decode_bigint(protocol.read_exact(stream, size))
        if tag == protocol.TAG_FLOAT:
            return float(protocol.read_struct(stream, protocol.F64))
        if tag == protocol.TAG_STRING:
            text = protocol.read_text(stream)
            self._remember(text)
            return text
        if tag == protocol.TAG_BYTES:
            size = int(protocol.read_struct(stream, protocol.U32))
            data = protocol.read_exact(stream, size)
            self._remember(data)
            return data
        if tag == protocol.TAG_TUPLE:
            size = int(protocol.read_struct(stream, protocol.U32))
            return tuple(self._read_value(self._read_tag()) for _ in range(size))
        if tag == protocol.TAG_LIST:
            size = int(protocol.read_struct(stream, protocol.U32))
            items: list[Any] = []
            self._remember(items)
            for _ in range(size):
                items.append(self._read_value(self._read_tag()))
            return items
        if tag == protocol.TAG_DICT:
            size = int(protocol.read_struct(stream, protocol.U32))
            mapping: dict[Any, Any] = {}
            self._remember(mapping)
            for _ in range(size):
                key = self._read_value(self._read_tag())
                item = self._read_value(self._read_tag())
                try:
                    mapping[key] = item
                except TypeError as exc:
                    raise StreamFormatError(f"Unhashable dictionary key in stream: {exc}") from exc
            return mapping
        if tag == protocol.TAG_OBJECT:
            return self._read_instance()
        if tag == protocol.TAG_REFERENCE:
            value = self._lookup_handle(int(protocol.read_struct(stream, protocol.U32)))
            if isinstance(value, _ClassEntry):
                raise StreamFormatError("Class descriptor referenced in value position.")
            return value
        if tag == protocol.TAG_CLASSDESC:
            raise StreamFormatError("Class descriptor found in value position.")
        raise StreamFormatError(f"Unknown stream tag 0x{tag:02x}.")

    def _read_instance(self) -> Any:
        entry = self._read_class_entry()
        instance = entry.cls.__new__(entry.cls)
        self._remember(instance)
        for name in entry.descriptor.field_names:
            object.__setattr__(instance, name, self._read_value(self._read_tag()))
        return instance

    def _read_class_entry(self) -> _ClassEntry:
        tag = self._read_tag()
        if tag == protocol.TAG_REFERENCE:
            entry = self._lookup_handle(int(protocol.read_struct(self._stream, protocol.U32)))
            if not isinstance(entry, _ClassEntry):
                raise StreamFormatError("Expected a class descriptor back-reference.")
            return entry
        if tag != protocol.TAG_CLASSDESC:
            raise StreamFormatError(f"Expected a class descriptor, found tag 0x{tag:02x}.")

        identity = protocol.read_text(self._stream)
        fingerprint = int(protocol.read_struct(self._stream, protocol.I64))
        count = int(protocol.read_struct(self._stream, protocol.U16))
        field_names = tuple(protocol.read_text(self._stream) for _ in range(count))
        stream_descriptor = TypeDescriptor(identity=identity, fingerprint=fingerprint, field_names=field_names)

        handle = self._remember(_PENDING)
        entry = self._resolve_entry(stream_descriptor)
        self._handles[handle] = entry
        return entry

    def _resolve_entry(self, stream_descriptor: TypeDescriptor) -> _ClassEntry:
        identity = stream_descriptor.identity
        if self._resolver is not None:
            descriptor = self._resolver.resolve(stream_descriptor)
        else:
            descriptor = stream_descriptor

        cls = self._types.lookup_type(identity)
        if cls is None:
            raise UnknownTypeError(identity)
        local = self._types.local_descriptor_for(identity)
        if local is None or descriptor.fingerprint != local.fingerprint:
            allowed = self._resolver.fingerprints.alternates_for(identity) if self._resolver is not None else ()
            raise SchemaIncompatibleError(
                identity,
                stream_descriptor.fingerprint,
                None if local is None else local.fingerprint,
                allowed,
            )
        return _ClassEntry(descriptor=descriptor, cls=cls)
