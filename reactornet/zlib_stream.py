"""Streaming zlib compression into a Buffer."""

from __future__ import annotations

import zlib

from .buffer import Buffer

_Z_OK = 0
_Z_STREAM_END = 1
_Z_STREAM_ERROR = -2

_INITIAL_BUFFER_SIZE = 1024
_MAX_BUFFER_SIZE = 65536


class ZlibOutputStream:
    """Compresses data written to it and appends the result to ``output``.

    ``error_code()`` follows zlib's status codes: 0 while the stream is
    usable, 1 once it has been finished, negative after a failure.
    """

    def __init__(self, output: Buffer) -> None:
        self._output = output
        self._compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION)
        self._error = _Z_OK
        self._buffer_size = _INITIAL_BUFFER_SIZE
        self._input_bytes = 0
        self._output_bytes = 0

    def __enter__(self) -> ZlibOutputStream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.finish()

    def _emit(self, chunk: bytes) -> None:
        self._output.ensure_writable_bytes(self._buffer_size)
        available = self._output.writable_bytes()
        self._output.append(chunk)
        self._output_bytes += len(chunk)
        if len(chunk) >= available and self._buffer_size < _MAX_BUFFER_SIZE:
            self._buffer_size *= 2

    def write(self, data: bytes | bytearray | memoryview) -> bool:
        """Compress ``data``; return False if the stream is not usable."""
        if self._error != _Z_OK:
            return False
        data = bytes(data)
        if data:
            try:
                self._emit(self._compressor.compress(data))
            except zlib.error:
                self._error = _Z_STREAM_ERROR
                return False
            self._input_bytes += len(data)
        return self._error == _Z_OK

    def write_buffer(self, source: Buffer) -> bool:
        """Compress and consume the readable bytes of ``source``."""
        if self._error != _Z_OK:
            return False
        ok = self.write(source.peek())
        if ok:
            source.retrieve_all()
        return ok

    def finish(self) -> bool:
        """Flush the remaining compressed data and end the stream."""
        if self._error != _Z_OK:
            return False
        try:
            self._emit(self._compressor.flush(zlib.Z_FINISH))
            ok = True
        except zlib.error:
            ok = False
        self._error = _Z_STREAM_END
        return ok

    def input_bytes(self) -> int:
        return self._input_bytes

    def output_bytes(self) -> int:
        return self._output_bytes

    def internal_output_buffer_size(self) -> int:
        return self._buffer_size

    def error_code(self) -> int:
        return self._error