import os

import pytest

from reactornet.buffer import Buffer

INITIAL = Buffer.INITIAL_SIZE
PREPEND = Buffer.CHEAP_PREPEND


def test_new_buffer_regions():
    buf = Buffer()
    assert buf.readable_bytes() == 0
    assert buf.writable_bytes() == INITIAL
    assert buf.prependable_bytes() == PREPEND


def test_append_and_retrieve():
    buf = Buffer()
    buf.append(b"x" * 200)
    assert buf.readable_bytes() == 200
    assert buf.writable_bytes() == INITIAL - 200
    chunk = buf.retrieve_as_bytes(50)
    assert chunk == b"x" * 50
    assert buf.readable_bytes() == 150
    assert buf.prependable_bytes() == PREPEND + 50
    buf.append(b"x" * 200)
    assert buf.readable_bytes() == 350
    assert buf.retrieve_all_as_bytes() == b"x" * 350
    assert buf.readable_bytes() == 0
    assert buf.prependable_bytes() == PREPEND


def test_grow_resizes_storage():
    buf = Buffer()
    buf.append(b"y" * 400)
    buf.retrieve(50)
    buf.append(b"z" * 1000)
    assert buf.readable_bytes() == 350 + 1000
    assert buf.writable_bytes() == 0
    assert buf.prependable_bytes() == PREPEND + 50
    buf.retrieve_all()
    assert buf.readable_bytes() == 0
    assert buf.writable_bytes() == 400 + 1000
    assert buf.prependable_bytes() == PREPEND


def test_grow_inside_moves_data():
    buf = Buffer()
    buf.append(b"y" * 800)
    buf.retrieve(500)
    buf.append(b"z" * 300)
    assert buf.readable_bytes() == 600
    assert buf.writable_bytes() == INITIAL - 600
    assert buf.prependable_bytes() == PREPEND
    assert buf.peek() == b"y" * 300 + b"z" * 300


def test_shrink():
    buf = Buffer()
    buf.append(b"y" * 2000)
    buf.retrieve(1500)
    buf.shrink(0)
    assert buf.readable_bytes() == 500
    assert buf.writable_bytes() == INITIAL - 500
    assert buf.retrieve_all_as_bytes() == b"y" * 500


def test_prepend_int32():
    buf = Buffer()
    buf.append(b"a" * 200)
    buf.prepend_int32(7)
    assert buf.readable_bytes() == 204
    assert buf.prependable_bytes() == PREPEND - 4
    assert buf.read_int32() == 7
    assert buf.peek() == b"a" * 200


def test_prepend_too_large_raises():
    buf = Buffer()
    with pytest.raises(ValueError):
        buf.prepend(b"z" * (PREPEND + 1))


def test_int32_wire_format_is_big_endian():
    buf = Buffer()
    buf.append_int32(1)
    assert buf.peek() == b"\x00\x00\x00\x01"


@pytest.mark.parametrize(
    "append, read, value",
    [
        ("append_int64", "read_int64", -1234567890123),
        ("append_int32", "read_int32", -123456),
        ("append_int16", "read_int16", -1234),
        ("append_int8", "read_int8", -12),
    ],
)
def test_int_round_trip(append, read, value):
    buf = Buffer()
    getattr(buf, append)(value)
    assert getattr(buf, read)() == value
    assert buf.readable_bytes() == 0


def test_unsigned_values_wrap_to_signed():
    buf = Buffer()
    buf.append_int32(0xFFFFFFFF)
    assert buf.peek_int32() == -1
    assert buf.readable_bytes() == 4


def test_peek_does_not_consume():
    buf = Buffer()
    buf.append_int16(300)
    buf.append_int8(5)
    assert buf.peek_int16() == 300
    assert buf.read_int16() == 300
    assert buf.peek_int8() == 5
    assert buf.readable_bytes() == 1


def test_peek_int_without_data_raises():
    buf = Buffer()
    buf.append(b"ab")
    with pytest.raises(ValueError):
        buf.peek_int32()


def test_retrieve_too_much_raises():
    buf = Buffer()
    buf.append(b"abc")
    with pytest.raises(ValueError):
        buf.retrieve(4)


def test_find_eol():
    buf = Buffer()
    buf.append(b"abc\ndef")
    index = buf.find_eol()
    assert buf.peek()[index:index + 1] == b"\n"
    assert buf.peek()[:index] == b"abc"
    assert buf.find_eol(index + 1) is None


def test_find_crlf_and_retrieve_until():
    buf = Buffer()
    buf.append(b"GET / HTTP/1.1\r\nHost")
    index = buf.find_crlf()
    assert buf.peek()[index:index + 2] == b"\r\n"
    buf.retrieve_until(index + 2)
    assert buf.peek() == b"Host"
    assert buf.find_crlf() is None


def test_unwrite():
    buf = Buffer()
    buf.append(b"hello world")
    buf.unwrite(6)
    assert buf.peek() == b"hello"
    with pytest.raises(ValueError):
        buf.unwrite(6)


def test_swap():
    first = Buffer()
    second = Buffer()
    first.append(b"one")
    second.append(b"second")
    first.swap(second)
    assert first.peek() == b"second"
    assert second.peek() == b"one"


def test_append_text_is_utf8():
    buf = Buffer()
    buf.append("world\n")
    assert buf.retrieve_all_as_bytes() == b"world\n"


def test_internal_capacity_grows():
    buf = Buffer(16)
    before = buf.internal_capacity()
    buf.append(b"q" * 100)
    assert buf.internal_capacity() >= PREPEND + 100
    assert buf.internal_capacity() > before


def test_read_fd_small():
    read_end, write_end = os.pipe()
    try:
        os.write(write_end, b"hello")
        buf = Buffer()
        assert buf.read_fd(read_end) == 5
        assert buf.peek() == b"hello"
    finally:
        os.close(read_end)
        os.close(write_end)


def test_read_fd_beyond_writable_space():
    read_end, write_end = os.pipe()
    payload = bytes(range(256)) * 4
    try:
        os.write(write_end, payload)
        buf = Buffer(16)
        assert buf.read_fd(read_end) == len(payload)
        assert buf.retrieve_all_as_bytes() == payload
    finally:
        os.close(read_end)
        os.close(write_end)