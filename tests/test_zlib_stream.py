import os
import zlib

from reactornet.buffer import Buffer
from reactornet.zlib_stream import ZlibOutputStream


def test_round_trip():
    data = b"hello, reactor " * 200
    output = Buffer()
    stream = ZlibOutputStream(output)
    assert stream.write(data) is True
    assert stream.finish() is True
    assert zlib.decompress(output.retrieve_all_as_bytes()) == data


def test_byte_counters():
    data = b"abcdefgh" * 500
    output = Buffer()
    stream = ZlibOutputStream(output)
    stream.write(data)
    stream.finish()
    assert stream.input_bytes() == len(data)
    assert stream.output_bytes() == output.readable_bytes()
    assert stream.output_bytes() < stream.input_bytes()


def test_empty_stream_round_trip():
    output = Buffer()
    stream = ZlibOutputStream(output)
    assert stream.finish() is True
    assert zlib.decompress(output.peek()) == b""
    assert stream.input_bytes() == 0


def test_several_writes_round_trip():
    parts = [b"first part ", b"second part ", b"third part"]
    output = Buffer()
    stream = ZlibOutputStream(output)
    for part in parts:
        assert stream.write(part) is True
    stream.finish()
    assert zlib.decompress(output.peek()) == b"".join(parts)


def test_write_buffer_consumes_source():
    source = Buffer()
    source.append(b"payload " * 64)
    expected = source.peek()
    output = Buffer()
    stream = ZlibOutputStream(output)
    assert stream.write_buffer(source) is True
    assert source.readable_bytes() == 0
    stream.finish()
    assert zlib.decompress(output.peek()) == expected


def test_initial_buffer_size():
    assert ZlibOutputStream(Buffer()).internal_output_buffer_size() == 1024


def test_error_code_before_and_after_finish():
    stream = ZlibOutputStream(Buffer())
    assert stream.error_code() == 0
    stream.finish()
    assert stream.error_code() == 1


def test_no_writes_after_finish():
    output = Buffer()
    stream = ZlibOutputStream(output)
    stream.finish()
    size = output.readable_bytes()
    assert stream.write(b"late") is False
    assert stream.finish() is False
    assert output.readable_bytes() == size


def test_write_buffer_after_finish_leaves_source():
    source = Buffer()
    source.append(b"untouched")
    stream = ZlibOutputStream(Buffer())
    stream.finish()
    assert stream.write_buffer(source) is False
    assert source.peek() == b"untouched"


def test_buffer_size_grows_for_large_output():
    data = os.urandom(1 << 20)
    output = Buffer()
    stream = ZlibOutputStream(output)
    stream.write(data)
    stream.finish()
    assert 1024 < stream.internal_output_buffer_size() <= 65536
    assert zlib.decompress(output.peek()) == data


def test_context_manager_finishes():
    output = Buffer()
    with ZlibOutputStream(output) as stream:
        stream.write(b"inside a with block")
    assert stream.error_code() == 1
    assert zlib.decompress(output.peek()) == b"inside a with block"