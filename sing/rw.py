"""Helpers for byte streams, unsigned varints and small files."""

import json
import os
import shutil
import threading
from typing import Any, BinaryIO, Protocol, runtime_checkable

from .upstream import cast

ZERO_BYTES = bytes(1024)

_MAX_VARINT_LEN = 10
_UINT64_LIMIT = 1 << 64
_SKIP_CHUNK = 64 * 1024


@runtime_checkable
class _ReadCloser(Protocol):
    def close_read(self) -> Any:
        ...


@runtime_checkable
class _WriteCloser(Protocol):
    def close_write(self) -> Any:
        ...


class ReadCounter:
    """A reader that counts the bytes read through it."""

    def __init__(self, reader: BinaryIO) -> None:
        self._reader = reader
        self._count = 0
        self._lock = threading.Lock()

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes from the wrapped reader."""
        data = self._reader.read(size)
        if data:
            with self._lock:
                self._count += len(data)
        return data

    def count(self) -> int:
        """Return the number of bytes read so far."""
        with self._lock:
            return self._count

    def reset(self) -> None:
        """Set the count back to zero."""
        with self._lock:
            self._count = 0


def close_read(obj: Any) -> None:
    """Close the read side of ``obj`` or of the first object in its upstream chain that has one."""
    closer = cast(obj, _ReadCloser)
    if closer is not None:
        closer.close_read()


def close_write(obj: Any) -> None:
    """Close the write side of ``obj`` or of the first object in its upstream chain that has one."""
    closer = cast(obj, _WriteCloser)
    if closer is not None:
        closer.close_write()


def file_exists(path: str) -> bool:
    """Return whether ``path`` can be stat'ed."""
    try:
        os.stat(path)
    except OSError:
        return False
    return True


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent and not file_exists(parent):
        os.makedirs(parent, mode=0o755, exist_ok=True)


def copy_file(src_path: str, dst_path: str) -> None:
    """Copy ``src_path`` to ``dst_path``, creating missing parent directories."""
    with open(src_path, "rb") as source:
        _ensure_parent(dst_path)
        with open(dst_path, "wb") as destination:
            shutil.copyfileobj(source, destination)


def write_file(path: str, content: bytes) -> None:
    """Write ``content`` to ``path``, creating missing parent directories."""
    _ensure_parent(path)
    with open(path, "wb") as file:
        file.write(content)


def read_json(path: str) -> Any:
    """Load and return the JSON document stored at ``path``."""
    with open(path, "rb") as file:
        return json.loads(file.read())


def write_json(path: str, data: Any) -> None:
    """Store ``data`` at ``path`` as compact JSON."""
    content = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    write_file(path, content.encode("utf-8"))


def skip(reader: BinaryIO) -> None:
    """Discard one byte from ``reader``."""
    skip_n(reader, 1)


def skip_n(reader: BinaryIO, size: int) -> None:
    """Discard exactly ``size`` bytes; raise ``EOFError`` if the stream ends first."""
    remaining = size
    while remaining > 0:
        data = reader.read(min(remaining, _SKIP_CHUNK))
        if not data:
            raise EOFError(f"skipped {size - remaining} of {size} bytes")
        remaining -= len(data)


def read_byte(reader: BinaryIO) -> int:
    """Read one byte and return it as an integer."""
    return read_bytes(reader, 1)[0]


def read_bytes(reader: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes; raise ``EOFError`` if the stream ends first."""
    data = bytearray()
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            raise EOFError(f"expected {size} bytes, got {len(data)}")
        data += chunk
    return bytes(data)


def read_string(reader: BinaryIO, size: int) -> str:
    """Read exactly ``size`` bytes and decode them as UTF-8."""
    return read_bytes(reader, size).decode("utf-8", errors="surrogateescape")


def read_uvarint(reader: BinaryIO) -> int:
    """Read an unsigned LEB128 varint of at most 64 bits."""
    value = 0
    shift = 0
    for index in range(_MAX_VARINT_LEN):
        try:
            byte = read_byte(reader)
        except EOFError:
            if index > 0:
                raise EOFError("unexpected end of varint") from None
            raise
        if byte < 0x80:
            if index == _MAX_VARINT_LEN - 1 and byte > 1:
                raise ValueError("varint overflows a 64-bit integer")
            return value | (byte << shift)
        value |= (byte & 0x7F) << shift
        shift += 7
    raise ValueError("varint overflows a 64-bit integer")


def uvarint_len(value: int) -> int:
    """Return how many bytes the varint encoding of ``value`` takes."""
    length = 1
    while value >= 0x80:
        value >>= 7
        length += 1
    return length


def _encode_uvarint(value: int) -> bytes:
    if not 0 <= value < _UINT64_LIMIT:
        raise ValueError(f"value out of range for an unsigned 64-bit varint: {value}")
    encoded = bytearray()
    while value >= 0x80:
        encoded.append((value & 0x7F) | 0x80)
        value >>= 7
    encoded.append(value)
    return bytes(encoded)


def write_uvarint(writer: BinaryIO, value: int) -> None:
    """Write ``value`` as an unsigned varint."""
    writer.write(_encode_uvarint(value))


def write_vstring(writer: BinaryIO, value: str) -> None:
    """Write ``value`` as a varint byte length followed by its UTF-8 bytes."""
    encoded = value.encode("utf-8", errors="surrogateescape")
    write_uvarint(writer, len(encoded))
    writer.write(encoded)


def read_vstring(reader: BinaryIO) -> str:
    """Read a string written by :func:`write_vstring`."""
    length = read_uvarint(reader)
    return read_string(reader, length)


def write_byte(writer: BinaryIO, b: int) -> None:
    """Write a single byte."""
    writer.write(bytes((b,)))


def write_bytes(writer: BinaryIO, b: bytes) -> None:
    """Write ``b`` in one call."""
    writer.write(b)


def write_zero(writer: BinaryIO) -> None:
    """Write one zero byte."""
    write_byte(writer, 0)


def write_zero_n(writer: BinaryIO, size: int) -> None:
    """Write ``size`` zero bytes in chunks of at most 1024."""
    written = 0
    while written < size:
        chunk = min(len(ZERO_BYTES), size - written)
        writer.write(ZERO_BYTES[:chunk])
        written += chunk


def write_string(writer: BinaryIO, s: str) -> None:
    """Write the UTF-8 bytes of ``s``."""
    writer.write(s.encode("utf-8", errors="surrogateescape"))