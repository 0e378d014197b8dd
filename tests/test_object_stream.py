"""Tests for the object stream writer/reader pair."""

from __future__ import annotations

import io
from dataclasses import dataclass, field

import pytest

from core.descriptor_resolver import DescriptorResolver
from core.descriptors import TypeDescriptor
from core.errors import SchemaIncompatibleError, SerializationError, StreamFormatError, UnknownTypeError
from core.fingerprint_registry import FingerprintRegistry
from core.type_registry import MappingTypeRegistry
from streaming import protocol
from streaming.object_reader import ObjectStreamReader
from streaming.object_writer import ObjectStreamWriter


@dataclass(eq=False)
class Node:
    label: str
    children: list = field(default_factory=list)
    parent: "Node | None" = None


@dataclass(frozen=True)
class Point:
    x: int
    y: float


class Legacy:
    __stream_fields__ = ("code",)

    def __init__(self, code: str) -> None:
        self.code = code


class Opaque:
    pass


def _types() -> MappingTypeRegistry:
    types = MappingTypeRegistry()
    types.register(Node, "example.Node")
    types.register(Point, "example.Point")
    types.register(Legacy, "example.Legacy")
    return types


def _encode(*values, types: MappingTypeRegistry | None = None) -> bytes:
    buffer = io.BytesIO()
    writer = ObjectStreamWriter(buffer, types or _types())
    for value in values:
        writer.write_object(value)
    return buffer.getvalue()


def _decode(data: bytes, types: MappingTypeRegistry | None = None, resolver: DescriptorResolver | None = None):
    return ObjectStreamReader(io.BytesIO(data), types or _types(), resolver=resolver).read_object()


def test_primitive_containers_survive_encoding() -> None:
    payload = {
        "ints": [0, -1, 2**40, 2**80, -(2**70)],
        "float": 1.25,
        "flags": (True, False, None),
        "blob": b"\x00\xff",
        "text": "héllo",
    }

    assert _decode(_encode(payload)) == payload


def test_cycles_and_shared_references_are_restored() -> None:
    root = Node("root")
    child = Node("child", parent=root)
    root.children.extend([child, child])

    decoded = _decode(_encode(root))

    assert decoded.label == "root"
    assert decoded.children[0] is decoded.children[1]
    assert decoded.children[0].parent is decoded


def test_self_referencing_list() -> None:
    items: list = [1]
    items.append(items)

    decoded = _decode(_encode(items))

    assert decoded[0] == 1
    assert decoded[1] is decoded


def test_frozen_dataclass_and_declared_fields() -> None:
    decoded = _decode(_encode([Point(1, 2.5), Legacy("x7")]))

    assert decoded[0] == Point(1, 2.5)
    assert isinstance(decoded[1], Legacy)
    assert decoded[1].code == "x7"


def test_class_descriptor_written_once_per_type() -> None:
    data = _encode([Point(1, 1.0), Point(2, 2.0), Point(3, 3.0)])

    assert data.count(b"example.Point") == 1


def test_several_top_level_objects() -> None:
    data = _encode(Point(1, 1.0), "tail")
    reader = ObjectStreamReader(io.BytesIO(data), _types())

    assert list(reader.iter_objects()) == [Point(1, 1.0), "tail"]


def test_writer_rejects_non_introspectable_objects() -> None:
    with pytest.raises(SerializationError, match="Opaque"):
        _encode(Opaque())


def test_unknown_type_in_stream() -> None:
    data = _encode(Point(1, 1.0))
    empty = MappingTypeRegistry()

    with pytest.raises(UnknownTypeError, match="example.Point"):
        _decode(data, types=empty)


def test_fingerprint_mismatch_is_rejected_without_allow_entry() -> None:
    @dataclass(frozen=True)
    class PointV2:
        __stream_fingerprint__ = 2

        x: int
        y: float

    reader_types = MappingTypeRegistry()
    reader_types.register(PointV2, "example.Point")
    resolver = DescriptorResolver(FingerprintRegistry(), reader_types)

    with pytest.raises(SchemaIncompatibleError, match="local fingerprint = 2") as excinfo:
        _decode(_encode(Point(1, 1.0)), types=reader_types, resolver=resolver)
    assert excinfo.value.identity == "example.Point"
    assert excinfo.value.local_fingerprint == 2
    assert excinfo.value.allowed == ()


def test_bad_magic_and_truncation() -> None:
    with pytest.raises(StreamFormatError, match="bad magic"):
        _decode(b"NOPE\x01\x00")

    data = _encode(Point(1, 1.0))
    with pytest.raises(StreamFormatError, match="Unexpected end of stream"):
        _decode(data[:-3])


def test_unsupported_version() -> None:
    data = protocol.HEADER.pack(protocol.STREAM_MAGIC, 99) + bytes((protocol.TAG_NULL,))

    with pytest.raises(StreamFormatError, match="version 99"):
        _decode(data)


def test_deep_nesting_raises_serialization_error() -> None:
    value: list = []
    for _ in range(50_000):
        value = [value]

    with pytest.raises(SerializationError, match="recursion limit"):
        _encode(value)


def test_deep_nesting_in_stream_raises_format_error() -> None:
    nested = (bytes((protocol.TAG_LIST,)) + protocol.U32.pack(1)) * 50_000
    data = protocol.HEADER.pack(protocol.STREAM_MAGIC, protocol.STREAM_VERSION) + nested + bytes((protocol.TAG_NULL,))

    with pytest.raises(StreamFormatError, match="recursion limit"):
        _decode(data)


def test_reader_uses_registry_local_descriptor() -> None:
    class SchemaStoreTypes(MappingTypeRegistry):
        def local_descriptor_for(self, identity: str):
            local = super().local_descriptor_for(identity)
            if identity == "example.Point" and local is not None:
                return TypeDescriptor(identity, 77, local.field_names)
            return local

    types = SchemaStoreTypes()
    types.register(Point, "example.Point")

    with pytest.raises(SchemaIncompatibleError, match="local fingerprint = 77"):
        _decode(_encode(Point(1, 1.0)), types=types)
