"""Bounded in-memory byte pipe between the producer and the sink.

``AsyncPipe`` holds at most ``capacity`` chunks.  Writers block while it is
full and readers block while it is empty.  Either side can close the pipe
with an error; the first error passed to either side is kept as
``pipe.error`` and is what the other side observes:

- after ``close_write(error)`` the reader raises ``error`` (buffered chunks
  are dropped, a failed stream is never partially delivered as complete);
- after ``close_read(error)`` the writer raises ``PipeClosedError``
  chained to ``error``.

Closing a side twice is a no-op.

Usage:
    pipe = AsyncPipe(capacity=16)
    await pipe.writer.write(b"data")
    pipe.writer.abort(error)   # or: await pipe.writer.close()
    chunk = await pipe.reader.read(8192)
"""

import asyncio
from collections import deque
from typing import Protocol

from pgs3backup.errors import PipeClosedError

DEFAULT_CAPACITY = 16


class ByteWriter(Protocol):
    """A stage that consumes a byte stream.

    ``close()`` finalizes the stage and everything downstream of it.
    ``abort()`` releases the stage without finalizing and passes ``error``
    downstream.  Both are idempotent.
    """

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...

    def abort(self, error: BaseException | None = None) -> None: ...


class AsyncPipe:
    """Single-producer, single-consumer bounded chunk queue.

    Args:
        capacity: Maximum number of buffered chunks.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._chunks: deque[bytes] = deque()
        self._not_empty = asyncio.Event()
        self._not_full = asyncio.Event()
        self._write_closed = False
        self._read_closed = False
        self._write_error: BaseException | None = None
        self._read_error: BaseException | None = None
        self.error: BaseException | None = None
        self.bytes_written = 0
        self.writer = PipeWriter(self)
        self.reader = PipeReader(self)

    @property
    def write_closed(self) -> bool:
        return self._write_closed

    @property
    def read_closed(self) -> bool:
        return self._read_closed

    def __len__(self) -> int:
        return len(self._chunks)

    async def write(self, data: bytes) -> None:
        """Append a chunk, waiting while the pipe is full."""
        if not data:
            return
        while True:
            if self._read_closed:
                raise PipeClosedError("Pipe reader closed") from self._read_error
            if self._write_closed:
                raise PipeClosedError("Write to a closed pipe")
            if len(self._chunks) < self._capacity:
                break
            self._not_full.clear()
            await self._not_full.wait()
        self._chunks.append(bytes(data))
        self.bytes_written += len(data)
        self._not_empty.set()

    async def read_chunk(self) -> bytes:
        """Return the next chunk, ``b""`` at end of stream."""
        while not self._chunks and not self._write_closed and not self._read_closed:
            self._not_empty.clear()
            await self._not_empty.wait()
        if self._read_closed:
            raise PipeClosedError("Read from a closed pipe")
        if self._chunks:
            chunk = self._chunks.popleft()
            self._not_full.set()
            return chunk
        if self._write_error is not None:
            raise self._write_error
        return b""

    def close_write(self, error: BaseException | None = None) -> None:
        """Signal end of stream, or failure when ``error`` is given."""
        if self._write_closed:
            return
        self._write_closed = True
        if error is not None:
            self._write_error = error
            self._chunks.clear()
            self._record(error)
        self._wake()

    def close_read(self, error: BaseException | None = None) -> None:
        """Stop consuming; pending and future writes fail."""
        if self._read_closed:
            return
        self._read_closed = True
        self._read_error = error
        self._chunks.clear()
        if error is not None:
            self._record(error)
        self._wake()

    def _record(self, error: BaseException) -> None:
        if self.error is None:
            self.error = error

    def _wake(self) -> None:
        self._not_empty.set()
        self._not_full.set()


class PipeWriter:
    """``ByteWriter`` view of the pipe's write side."""

    def __init__(self, pipe: AsyncPipe) -> None:
        self._pipe = pipe

    async def write(self, data: bytes) -> None:
        await self._pipe.write(data)

    async def close(self) -> None:
        self._pipe.close_write()

    def abort(self, error: BaseException | None = None) -> None:
        self._pipe.close_write(error or PipeClosedError("Producer aborted"))


class PipeReader:
    """File-like read side of the pipe."""

    def __init__(self, pipe: AsyncPipe) -> None:
        self._pipe = pipe
        self._pending = b""
        self.eof = False

    async def read_chunk(self) -> bytes:
        """Return the next available chunk, ``b""`` at end of stream."""
        if self._pending:
            chunk, self._pending = self._pending, b""
            return chunk
        chunk = await self._pipe.read_chunk()
        if not chunk:
            self.eof = True
        return chunk

    async def read(self, size: int = -1) -> bytes:
        """Read ``size`` bytes, fewer only at end of stream.

        ``size < 0`` reads until end of stream.
        """
        if size == 0:
            return b""
        parts: list[bytes] = []
        have = 0
        while size < 0 or have < size:
            chunk = await self.read_chunk()
            if not chunk:
                break
            if size >= 0 and have + len(chunk) > size:
                cut = size - have
                parts.append(chunk[:cut])
                self._pending = chunk[cut:]
                have = size
                break
            parts.append(chunk)
            have += len(chunk)
        return b"".join(parts)

    def close(self, error: BaseException | None = None) -> None:
        self._pending = b""
        self._pipe.close_read(error)

    def __aiter__(self) -> "PipeReader":
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read_chunk()
        if not chunk:
            raise StopAsyncIteration
        return chunk
