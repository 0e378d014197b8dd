"""Wire constants and primitive codecs for the object stream format."""

from __future__ import annotations

import struct
from typing import BinaryIO

from core.errors import StreamFormatError


STREAM_MAGIC = b"VTOS"
STREAM_VERSION = 1

TAG_NULL = 0x70
TAG_REFERENCE = 0x71
TAG_CLASSDESC = 0x72
TAG_OBJECT = 0x73
TAG_STRING = 0x74
TAG_LIST = 0x75
TAG_DICT = 0x76
TAG_TUPLE = 0x77
TAG_INT = 0x78
TAG_BIGINT = 0x79
TAG_FLOAT = 0x7A
TAG_TRUE = 0x7B
TAG_FALSE = 0x7C
TAG_BYTES = 0x7D

MAX_FIELDS = 0xFFFF

HEADER = struct.Struct("<4sH")
U16 = struct.Struct("<H")
U32 = struct.Struct("<I")
I64 = struct.Struct("<q")
F64 = struct.Struct("<d")


def read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        got = 0 if data is None else len(data)
        raise StreamFormatError(f"Unexpected end of stream: wanted {size} bytes, got {got}.")
    return data


def read_struct(stream: BinaryIO, codec: struct.Struct) -> int | float:
    return codec.unpack(read_exact(stream, codec.size))[0]


def write_header(stream: BinaryIO) -> None:
    stream.write(HEADER.pack(STREAM_MAGIC, STREAM_VERSION))


def read_header(stream: BinaryIO) -> None:
    magic, version = HEADER.unpack(read_exact(stream, HEADER.size))
    if magic != STREAM_MAGIC:
        raise StreamFormatError(f"Not an object stream: bad magic {magic!r}.")
    if version != STREAM_VERSION:
        raise StreamFormatError(
            f"Unsupported object stream version {version}; expected {STREAM_VERSION}."
        )


def write_text(stream: BinaryIO, text: str) -> None:
    data = text.encode("utf-8")
    stream.write(U32.pack(len(data)))
    stream.write(data)


def read_text(stream: BinaryIO) -> str:
    size = int(read_struct(stream, U32))
    try:
        return read_exact(stream, size).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise StreamFormatError(f"Invalid UTF-8 in stream string: {exc}") from exc


def encode_bigint(value: int) -> bytes:
    size = (value.bit_length() + 8) // 8
    return value.to_bytes(size, byteorder="big", signed=True)


def decode_bigint(data: bytes) -> int:
    return int.from_bytes(data, byteorder="big", signed=True)
