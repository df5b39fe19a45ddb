"Rebuffering of streamed input, for parsing records out of it."
from __future__ import annotations
from coopio.io import AsyncFile, READ_SIZE
import typing as t

__all__ = [
    "AsyncReadBuffer",
]

class AsyncReadBuffer:
    """A buffer for parsing variable-length streaming data.

    When reading data from a stream such as a pipe or stdin, data is not delivered to
    us in nicely-separated records. We need to rebuffer the data so that it can be
    parsed. That's what this class does; and it provides a few helper methods to make it
    easier to read and parse such streams.

    """
    def __init__(self, file: AsyncFile, read_size: int=READ_SIZE) -> None:
        self.file = file
        self.read_size = read_size
        self.buf = b""

    async def _read(self) -> bytes:
        "Read some bytes; raise EOFError on EOF."
        data = await self.file.read(self.read_size)
        if len(data) == 0:
            raise EOFError
        return data

    async def read_length(self, length: int) -> bytes:
        "Read exactly this many bytes; raises on EOF."
        while len(self.buf) < length:
            self.buf += await self._read()
        section = self.buf[:length]
        self.buf = self.buf[length:]
        return section

    async def read_until_delimiter(self, delim: bytes) -> t.Optional[bytes]:
        "Read and return all bytes until the specified delimiter, stripping the delimiter; on EOF, return None."
        while True:
            try:
                i = self.buf.index(delim)
            except ValueError:
                pass
            else:
                section = self.buf[:i]
                self.buf = self.buf[i+len(delim):]
                return section
            # buf contains no copies of "delim", gotta read some more data
            try:
                self.buf += await self._read()
            except EOFError:
                return None

    async def read_line(self) -> bytes:
        "Read and return a line, stripping the newline character."
        ret = await self.read_until_delimiter(b"\n")
        if ret is None:
            raise EOFError("hangup before reading full line")
        return ret

    async def read_to_end(self) -> bytes:
        "Read and return everything up to EOF, including anything already buffered."
        while True:
            try:
                self.buf += await self._read()
            except EOFError:
                break
        ret, self.buf = self.buf, b""
        return ret
