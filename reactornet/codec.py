"""Framing of protobuf messages with their type name and an Adler-32 checksum.

Wire format, all integers 32-bit big-endian::

    len | name_len | type_name NUL | payload | adler32

``len`` counts everything after itself; the checksum covers ``name_len``
through ``payload``.
"""

from __future__ import annotations

import enum
import logging
import struct
import zlib
from typing import Optional

from google.protobuf import descriptor_pool, message_factory
from google.protobuf.message import DecodeError, Message

from .buffer import Buffer

_log = logging.getLogger(__name__)

HEADER_LEN = 4
MIN_MESSAGE_LEN = 2 * HEADER_LEN + 2
MAX_MESSAGE_LEN = 64 * 1024 * 1024

_INT32 = struct.Struct(">i")
_UINT32 = struct.Struct(">I")


class ErrorCode(enum.IntEnum):
    NO_ERROR = 0
    INVALID_LENGTH = 1
    CHECKSUM_ERROR = 2
    INVALID_NAME_LEN = 3
    UNKNOWN_MESSAGE_TYPE = 4
    PARSE_ERROR = 5


class CodecError(Exception):
    """A frame could not be decoded; ``code`` tells why."""

    def __init__(self, code: ErrorCode, detail: str = "") -> None:
        super().__init__(detail or code.name)
        self.code = code


def create_message(type_name: str) -> Optional[Message]:
    """A new, empty message of a type known to the default pool, or None."""
    pool = descriptor_pool.Default()
    try:
        descriptor = pool.FindMessageTypeByName(type_name)
    except KeyError:
        return None
    get_class = getattr(message_factory, "GetMessageClass", None)
    if get_class is not None:
        cls = get_class(descriptor)
    else:
        cls = message_factory.MessageFactory(pool).GetPrototype(descriptor)
    return cls()


def _checksum(data: bytes) -> int:
    return zlib.adler32(data, 1) & 0xFFFFFFFF


def encode(message: Message) -> bytes:
    """Frame ``message`` for the wire, length prefix included."""
    type_name = message.DESCRIPTOR.full_name.encode("utf-8") + b"\0"
    body = _INT32.pack(len(type_name)) + type_name + message.SerializeToString()
    body += _UINT32.pack(_checksum(body))
    return _INT32.pack(len(body)) + body


def parse(data: bytes) -> Message:
    """Parse one frame without its length prefix; raises CodecError."""
    data = bytes(data)
    length = len(data)
    if length < MIN_MESSAGE_LEN:
        raise CodecError(ErrorCode.INVALID_LENGTH, f"frame of {length} bytes is too short")
    expected = _UINT32.unpack_from(data, length - HEADER_LEN)[0]
    if _checksum(data[:length - HEADER_LEN]) != expected:
        raise CodecError(ErrorCode.CHECKSUM_ERROR)
    name_len = _INT32.unpack_from(data, 0)[0]
    if not 2 <= name_len <= length - 2 * HEADER_LEN:
        raise CodecError(ErrorCode.INVALID_NAME_LEN, f"name length {name_len}")
    raw_name = data[HEADER_LEN:HEADER_LEN + name_len - 1]
    try:
        type_name = raw_name.decode("utf-8")
    except UnicodeDecodeError:
        raise CodecError(ErrorCode.UNKNOWN_MESSAGE_TYPE, repr(raw_name)) from None
    message = create_message(type_name)
    if message is None:
        raise CodecError(ErrorCode.UNKNOWN_MESSAGE_TYPE, type_name)
    payload = data[HEADER_LEN + name_len:length - HEADER_LEN]
    try:
        message.ParseFromString(payload)
    except DecodeError as exc:
        raise CodecError(ErrorCode.PARSE_ERROR, str(exc)) from exc
    return message


def decode(buffer: Buffer) -> list[Message]:
    """Take every complete frame out of ``buffer`` and return its messages.

    An incomplete trailing frame stays in the buffer. A bad length or a
    frame that fails to parse raises CodecError and is left in the buffer.
    """
    messages = []
    while buffer.readable_bytes() >= MIN_MESSAGE_LEN + HEADER_LEN:
        length = buffer.peek_int32()
        if length > MAX_MESSAGE_LEN or length < MIN_MESSAGE_LEN:
            _log.error("len: %s, max: %s, min: %s", length, MAX_MESSAGE_LEN, MIN_MESSAGE_LEN)
            raise CodecError(ErrorCode.INVALID_LENGTH, f"frame length {length}")
        if buffer.readable_bytes() < length + HEADER_LEN:
            break
        frame = bytes(buffer.peek())[HEADER_LEN:HEADER_LEN + length]
        try:
            message = parse(frame)
        except CodecError as exc:
            _log.error("parse message fail, error code: %s", exc.code.name)
            raise
        buffer.retrieve(HEADER_LEN + length)
        messages.append(message)
    return messages