"""Compression Stage: transparent gzip over a byte stream."""

import zlib

from pgs3backup.backup.pipe import ByteWriter
from pgs3backup.errors import CompressionError

# wbits=31 selects the gzip container (16 + MAX_WBITS)
GZIP_WBITS = 16 + zlib.MAX_WBITS


class GzipStage:
    """``ByteWriter`` that gzips everything written and forwards it downstream.

    Compressed output is forwarded as soon as the compressor emits it; only
    the compressor's own window is buffered.  ``close()`` flushes the
    compressor exactly once, ``abort()`` drops it without writing a trailer.

    Args:
        out: Downstream stage receiving compressed bytes.
        level: zlib compression level (0-9).
    """

    def __init__(self, out: ByteWriter, level: int = 6) -> None:
        self._out = out
        try:
            self._compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS)
        except (ValueError, zlib.error) as e:
            raise CompressionError(f"Cannot create compressor: {e}") from e
        self._finished = False
        self.bytes_in = 0
        self.bytes_out = 0

    async def write(self, data: bytes) -> None:
        if self._finished:
            raise CompressionError("Write to a finished compressor")
        try:
            output = self._compressor.compress(data)
        except zlib.error as e:
            raise CompressionError(f"Compression failed: {e}") from e
        self.bytes_in += len(data)
        await self._forward(output)

    async def close(self) -> None:
        if self._finished:
            return
        self._finished = True
        compressor, self._compressor = self._compressor, None
        try:
            trailer = compressor.flush(zlib.Z_FINISH)
        except zlib.error as e:
            error = CompressionError(f"Compressor flush failed: {e}")
            self._out.abort(error)
            raise error from e
        await self._forward(trailer)
        await self._out.close()

    def abort(self, error: BaseException | None = None) -> None:
        if self._finished:
            return
        self._finished = True
        self._compressor = None
        self._out.abort(error)

    async def _forward(self, output: bytes) -> None:
        if output:
            self.bytes_out += len(output)
            await self._out.write(output)
