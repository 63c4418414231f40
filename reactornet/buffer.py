"""A growable byte buffer with cheap prepend space, used for socket I/O."""

from __future__ import annotations

import os

_CRLF = b"\r\n"
_EXTRA_READ_SIZE = 65536


class Buffer:
    """Byte buffer laid out as prependable, readable and writable regions.

    All integers are written and read in network (big-endian) byte order.
    Offsets taken and returned by the search methods are relative to the
    start of the readable region.
    """

    CHEAP_PREPEND = 8
    INITIAL_SIZE = 1024

    __slots__ = ("_buf", "_reader", "_writer")

    def __init__(self, initial_size: int = INITIAL_SIZE) -> None:
        if initial_size < 0:
            raise ValueError("initial_size must not be negative")
        self._buf = bytearray(self.CHEAP_PREPEND + initial_size)
        self._reader = self.CHEAP_PREPEND
        self._writer = self.CHEAP_PREPEND

    def __len__(self) -> int:
        return self.readable_bytes()

    def __bytes__(self) -> bytes:
        return self.peek()

    def __repr__(self) -> str:
        return (
            f"Buffer(readable={self.readable_bytes()}, "
            f"writable={self.writable_bytes()}, "
            f"prependable={self.prependable_bytes()})"
        )

    def swap(self, other: Buffer) -> None:
        """Exchange contents with another buffer."""
        self._buf, other._buf = other._buf, self._buf
        self._reader, other._reader = other._reader, self._reader
        self._writer, other._writer = other._writer, self._writer

    def readable_bytes(self) -> int:
        return self._writer - self._reader

    def writable_bytes(self) -> int:
        return len(self._buf) - self._writer

    def prependable_bytes(self) -> int:
        return self._reader

    def peek(self) -> bytes:
        """Return a copy of the readable bytes without consuming them."""
        return bytes(self._buf[self._reader:self._writer])

    def _search_start(self, start: int) -> int:
        if not 0 <= start <= self.readable_bytes():
            raise ValueError(f"start {start} outside readable region")
        return self._reader + start

    def find_crlf(self, start: int = 0) -> int | None:
        """Offset of the first CRLF at or after ``start``, or None."""
        index = self._buf.find(_CRLF, self._search_start(start), self._writer)
        return None if index < 0 else index - self._reader

    def find_eol(self, start: int = 0) -> int | None:
        """Offset of the first newline at or after ``start``, or None."""
        index = self._buf.find(b"\n", self._search_start(start), self._writer)
        return None if index < 0 else index - self._reader

    def retrieve(self, length: int) -> None:
        """Discard ``length`` readable bytes."""
        if not 0 <= length <= self.readable_bytes():
            raise ValueError(
                f"cannot retrieve {length} bytes, {self.readable_bytes()} readable"
            )
        if length < self.readable_bytes():
            self._reader += length
        else:
            self.retrieve_all()

    def retrieve_until(self, end: int) -> None:
        """Discard readable bytes up to offset ``end``."""
        self.retrieve(end)

    def retrieve_all(self) -> None:
        self._reader = self.CHEAP_PREPEND
        self._writer = self.CHEAP_PREPEND

    def retrieve_as_bytes(self, length: int) -> bytes:
        if not 0 <= length <= self.readable_bytes():
            raise ValueError(
                f"cannot retrieve {length} bytes, {self.readable_bytes()} readable"
            )
        result = bytes(self._buf[self._reader:self._reader + length])
        self.retrieve(length)
        return result

    def retrieve_all_as_bytes(self) -> bytes:
        return self.retrieve_as_bytes(self.readable_bytes())

    def append(self, data: bytes | bytearray | memoryview | str) -> None:
        """Append bytes (text is encoded as UTF-8) to the readable region."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        data = bytes(data)
        length = len(data)
        self.ensure_writable_bytes(length)
        self._buf[self._writer:self._writer + length] = data
        self._writer += length

    def ensure_writable_bytes(self, length: int) -> None:
        if length < 0:
            raise ValueError("length must not be negative")
        if self.writable_bytes() < length:
            self._make_space(length)

    def _make_space(self, length: int) -> None:
        if self.writable_bytes() + self.prependable_bytes() < length + self.CHEAP_PREPEND:
            self._buf.extend(bytes(self._writer + length - len(self._buf)))
        else:
            readable = self.readable_bytes()
            start = self.CHEAP_PREPEND
            self._buf[start:start + readable] = self._buf[self._reader:self._writer]
            self._reader = start
            self._writer = start + readable

    def unwrite(self, length: int) -> None:
        """Drop ``length`` bytes from the end of the readable region."""
        if not 0 <= length <= self.readable_bytes():
            raise ValueError(
                f"cannot unwrite {length} bytes, {self.readable_bytes()} readable"
            )
        self._writer -= length

    # Integer helpers ---------------------------------------------------

    @staticmethod
    def _encode_int(value: int, size: int) -> bytes:
        return (value & ((1 << (8 * size)) - 1)).to_bytes(size, "big")

    def _peek_int(self, size: int) -> int:
        if self.readable_bytes() < size:
            raise ValueError(
                f"need {size} readable bytes, have {self.readable_bytes()}"
            )
        raw = self._buf[self._reader:self._reader + size]
        return int.from_bytes(raw, "big", signed=True)

    def _read_int(self, size: int) -> int:
        value = self._peek_int(size)
        self.retrieve(size)
        return value

    def append_int64(self, value: int) -> None:
        self.append(self._encode_int(value, 8))

    def append_int32(self, value: int) -> None:
        self.append(self._encode_int(value, 4))

    def append_int16(self, value: int) -> None:
        self.append(self._encode_int(value, 2))

    def append_int8(self, value: int) -> None:
        self.append(self._encode_int(value, 1))

    def read_int64(self) -> int:
        return self._read_int(8)

    def read_int32(self) -> int:
        return self._read_int(4)

    def read_int16(self) -> int:
        return self._read_int(2)

    def read_int8(self) -> int:
        return self._read_int(1)

    def peek_int64(self) -> int:
        return self._peek_int(8)

    def peek_int32(self) -> int:
        return self._peek_int(4)

    def peek_int16(self) -> int:
        return self._peek_int(2)

    def peek_int8(self) -> int:
        return self._peek_int(1)

    def prepend_int64(self, value: int) -> None:
        self.prepend(self._encode_int(value, 8))

    def prepend_int32(self, value: int) -> None:
        self.prepend(self._encode_int(value, 4))

    def prepend_int16(self, value: int) -> None:
        self.prepend(self._encode_int(value, 2))

    def prepend_int8(self, value: int) -> None:
        self.prepend(self._encode_int(value, 1))

    def prepend(self, data: bytes | bytearray | memoryview) -> None:
        """Insert bytes in front of the readable region."""
        data = bytes(data)
        length = len(data)
        if length > self.prependable_bytes():
            raise ValueError(
                f"cannot prepend {length} bytes, {self.prependable_bytes()} available"
            )
        self._reader -= length
        self._buf[self._reader:self._reader + length] = data

    def shrink(self, reserve: int) -> None:
        """Compact storage to the readable data plus ``reserve`` spare bytes."""
        other = Buffer()
        other.ensure_writable_bytes(self.readable_bytes() + reserve)
        other.append(self.peek())
        self.swap(other)

    def internal_capacity(self) -> int:
        return len(self._buf)

    def read_fd(self, fd: int) -> int:
        """Read from a file descriptor into the buffer; return the byte count.

        Up to 64 KiB beyond the current writable space is read in one call.
        OS errors propagate as OSError.
        """
        writable = self.writable_bytes()
        extra = bytearray(_EXTRA_READ_SIZE)
        if hasattr(os, "readv"):
            with memoryview(self._buf) as whole:
                target = whole[self._writer:]
                try:
                    buffers = [target, extra] if writable < len(extra) else [target]
                    count = os.readv(fd, buffers)
                finally:
                    target.release()
            if count <= writable:
                self._writer += count
            else:
                self._writer = len(self._buf)
                self.append(extra[:count - writable])
            return count
        limit = writable + len(extra) if writable < len(extra) else writable
        data = os.read(fd, limit)
        self.append(data)
        return len(data)