"""Tests for the bounded byte pipe.

Verifies back-pressure, end of stream, error propagation in both
directions, and full-size reads.
"""

import asyncio

import pytest

from pgs3backup.backup.pipe import AsyncPipe
from pgs3backup.errors import PipeClosedError


# ============================================================================
# Test: Flow
# ============================================================================


class TestPipeFlow:
    """Verify ordering, back-pressure and end of stream."""

    async def test_chunks_arrive_in_order(self) -> None:
        """Chunks are read back in write order, then b"" at end."""
        pipe = AsyncPipe()
        await pipe.writer.write(b"one")
        await pipe.writer.write(b"two")
        await pipe.writer.close()

        assert [chunk async for chunk in pipe.reader] == [b"one", b"two"]
        assert pipe.reader.eof is True
        assert pipe.bytes_written == 6

    async def test_writer_blocks_when_full(self) -> None:
        """A full pipe suspends the writer until the reader takes a chunk."""
        pipe = AsyncPipe(capacity=2)
        await pipe.writer.write(b"a")
        await pipe.writer.write(b"b")

        pending = asyncio.create_task(pipe.writer.write(b"c"))
        await asyncio.sleep(0)
        assert not pending.done()
        assert len(pipe) == 2

        assert await pipe.reader.read_chunk() == b"a"
        await asyncio.wait_for(pending, timeout=1)
        assert len(pipe) == 2

    async def test_reader_waits_for_data(self) -> None:
        """An empty pipe suspends the reader until data arrives."""
        pipe = AsyncPipe()
        pending = asyncio.create_task(pipe.reader.read_chunk())
        await asyncio.sleep(0)
        assert not pending.done()

        await pipe.writer.write(b"late")
        assert await asyncio.wait_for(pending, timeout=1) == b"late"

    async def test_empty_write_is_ignored(self) -> None:
        """Writing b"" never produces an end-of-stream marker."""
        pipe = AsyncPipe()
        await pipe.writer.write(b"")
        assert len(pipe) == 0

    def test_capacity_must_be_positive(self) -> None:
        """A zero-capacity pipe is rejected."""
        with pytest.raises(ValueError):
            AsyncPipe(capacity=0)


# ============================================================================
# Test: Full reads
# ============================================================================


class TestPipeRead:
    """Verify read(size) returns full buffers except at end of stream."""

    async def test_read_spans_chunks(self) -> None:
        """read(n) joins and splits chunks to return exactly n bytes."""
        pipe = AsyncPipe()
        for chunk in (b"abc", b"def", b"gh"):
            await pipe.writer.write(chunk)
        await pipe.writer.close()

        assert await pipe.reader.read(4) == b"abcd"
        assert await pipe.reader.read(4) == b"efgh"
        assert await pipe.reader.read(4) == b""
        assert pipe.reader.eof is True

    async def test_short_read_only_at_end(self) -> None:
        """The final read may be shorter than requested."""
        pipe = AsyncPipe()
        await pipe.writer.write(b"xyz")
        await pipe.writer.close()

        assert await pipe.reader.read(10) == b"xyz"

    async def test_read_all(self) -> None:
        """read() with no size drains the stream."""
        pipe = AsyncPipe()
        await pipe.writer.write(b"12")
        await pipe.writer.write(b"34")
        await pipe.writer.close()

        assert await pipe.reader.read() == b"1234"

    async def test_read_waits_for_enough_bytes(self) -> None:
        """A read larger than the buffered data waits for more chunks."""
        pipe = AsyncPipe()
        await pipe.writer.write(b"ab")
        pending = asyncio.create_task(pipe.reader.read(4))
        await asyncio.sleep(0)
        assert not pending.done()

        await pipe.writer.write(b"cd")
        assert await asyncio.wait_for(pending, timeout=1) == b"abcd"


# ============================================================================
# Test: Errors
# ============================================================================


class TestPipeErrors:
    """Verify failures cross the pipe in both directions."""

    async def test_writer_abort_reaches_reader(self) -> None:
        """The reader raises the producer's error, not a clean end."""
        pipe = AsyncPipe()
        await pipe.writer.write(b"partial")
        error = RuntimeError("export failed")

        pipe.writer.abort(error)

        with pytest.raises(RuntimeError, match="export failed"):
            await pipe.reader.read(100)
        assert pipe.error is error

    async def test_abort_without_error_is_not_eof(self) -> None:
        """An abort with no error still fails the reader."""
        pipe = AsyncPipe()
        pipe.writer.abort()

        with pytest.raises(PipeClosedError):
            await pipe.reader.read_chunk()

    async def test_reader_close_reaches_writer(self) -> None:
        """The writer fails with PipeClosedError chained to the sink error."""
        pipe = AsyncPipe()
        error = RuntimeError("upload rejected")

        pipe.reader.close(error)

        with pytest.raises(PipeClosedError) as exc_info:
            await pipe.writer.write(b"data")
        assert exc_info.value.__cause__ is error
        assert pipe.error is error

    async def test_reader_close_wakes_blocked_writer(self) -> None:
        """A writer suspended on a full pipe is released by close."""
        pipe = AsyncPipe(capacity=1)
        await pipe.writer.write(b"a")
        pending = asyncio.create_task(pipe.writer.write(b"b"))
        await asyncio.sleep(0)

        pipe.reader.close(RuntimeError("gone"))

        with pytest.raises(PipeClosedError):
            await asyncio.wait_for(pending, timeout=1)

    async def test_first_error_wins(self) -> None:
        """Later failures do not replace the first recorded error."""
        pipe = AsyncPipe()
        first = RuntimeError("first")
        pipe.writer.abort(first)
        pipe.reader.close(RuntimeError("second"))

        assert pipe.error is first

    async def test_write_after_close_raises(self) -> None:
        """Writing after end of stream is an error."""
        pipe = AsyncPipe()
        await pipe.writer.close()

        with pytest.raises(PipeClosedError):
            await pipe.writer.write(b"late")

    async def test_close_is_idempotent(self) -> None:
        """Closing the write side twice keeps the first outcome."""
        pipe = AsyncPipe()
        await pipe.writer.close()
        pipe.writer.abort(RuntimeError("ignored"))

        assert await pipe.reader.read_chunk() == b""
        assert pipe.error is None
