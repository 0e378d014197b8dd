"""Encodes object graphs, shared references and cycles included, into an object stream."""

from __future__ import annotations

from typing import Any, BinaryIO

from core.descriptors import TypeDescriptor, describe_type
from core.errors import SerializationError
from core.type_registry import ImportTypeRegistry, TypeRegistry
from streaming import protocol


class ObjectStreamWriter:
    """Writes values to ``stream``; one header per writer, many objects per stream."""

    def __init__(self, stream: BinaryIO, type_registry: TypeRegistry | None = None) -> None:
        self._stream = stream
        self._types = type_registry if type_registry is not None else ImportTypeRegistry()
        self._handles: dict[int, int] = {}
        self._descriptor_handles: dict[type, int] = {}
        # Keeps memoized values alive so their id() stays unique.
        self._retained: list[Any] = []
        self._next_handle = 0
        self._header_written = False

    def write_object(self, value: Any) -> None:
        if not self._header_written:
            protocol.write_header(self._stream)
            self._header_written = True
        try:
            self._write_value(value)
        except RecursionError as exc:
            # The stream holds a partial record at this point.
            raise SerializationError("Value nesting exceeds the interpreter recursion limit.") from exc

    def _assign_handle(self, value: Any) -> None:
        self._handles[id(value)] = self._next_handle
        self._retained.append(value)
        self._next_handle += 1

    def _write_reference(self, handle: int) -> None:
        self._stream.write(bytes((protocol.TAG_REFERENCE,)))
        self._stream.write(protocol.U32.pack(handle))

    def _write_value(self, value: Any) -> None:
        out = self._stream
        if value is None:
            out.write(bytes((protocol.TAG_NULL,)))
            return
        if value is True:
            out.write(bytes((protocol.TAG_TRUE,)))
            return
        if value is False:
            out.write(bytes((protocol.TAG_FALSE,)))
            return
        if type(value) is int:
            if -(2**63) <= value < 2**63:
                out.write(bytes((protocol.TAG_INT,)))
                out.write(protocol.I64.pack(value))
            else:
                data = protocol.encode_bigint(value)
                out.write(bytes((protocol.TAG_BIGINT,)))
                out.write(protocol.U32.pack(len(data)))
                out.write(data)
            return
        if type(value) is float:
            out.write(bytes((protocol.TAG_FLOAT,)))
            out.write(protocol.F64.pack(value))
            return
        if type(value) is tuple:
            out.write(bytes((protocol.TAG_TUPLE,)))
            out.write(protocol.U32.pack(len(value)))
            for item in value:
                self._write_value(item)
            return

        handle = self._handles.get(id(value))
        if handle is not None:
            self._write_reference(handle)
            return

        if type(value) is str:
            self._assign_handle(value)
            out.write(bytes((protocol.TAG_STRING,)))
            protocol.write_text(out, value)
        elif type(value) is bytes:
            self._assign_handle(value)
            out.write(bytes((protocol.TAG_BYTES,)))
            out.write(protocol.U32.pack(len(value)))
            out.write(value)
        elif type(value) is list:
            self._assign_handle(value)
            out.write(bytes((protocol.TAG_LIST,)))
            out.write(protocol.U32.pack(len(value)))
            for item in value:
                self._write_value(item)
        elif type(value) is dict:
            self._assign_handle(value)
            out.write(bytes((protocol.TAG_DICT,)))
            out.write(protocol.U32.pack(len(value)))
            for key, item in value.items():
                self._write_value(key)
                self._write_value(item)
        else:
            self._write_instance(value)

    def _write_instance(self, value: Any) -> None:
        cls = type(value)
        descriptor = self._descriptor_for(cls)
        self._stream.write(bytes((protocol.TAG_OBJECT,)))
        self._write_descriptor(cls, descriptor)
        self._assign_handle(value)
        for name in descriptor.field_names:
            try:
                field_value = getattr(value, name)
            except AttributeError as exc:
                raise SerializationError(
                    f"Instance of '{descriptor.identity}' has no value for field '{name}'."
                ) from exc
            self._write_value(field_value)

    def _descriptor_for(self, cls: type) -> TypeDescriptor:
        descriptor = describe_type(cls, self._types.identity_for(cls))
        if descriptor is None:
            raise SerializationError(
                f"Cannot serialize {cls.__qualname__}: it is neither a dataclass nor declares __stream_fields__."
            )
        if len(descriptor.field_names) > protocol.MAX_FIELDS:
            raise SerializationError(f"Type '{descriptor.identity}' has too many fields to encode.")
        return descriptor

    def _write_descriptor(self, cls: type, descriptor: TypeDescriptor) -> None:
        handle = self._descriptor_handles.get(cls)
        if handle is not None:
            self._write_reference(handle)
            return
        out = self._stream
        out.write(bytes((protocol.TAG_CLASSDESC,)))
        protocol.write_text(out, descriptor.identity)
        out.write(protocol.I64.pack(descriptor.fingerprint))
        out.write(protocol.U16.pack(len(descriptor.field_names)))
        for name in descriptor.field_names:
            protocol.write_text(out, name)
        self._descriptor_handles[cls] = self._next_handle
        self._next_handle += 1
