"""Lazy chunked response bodies.

A streamer is a single-pass async iterable of byte chunks with a
last-modified timestamp. Iteration acquires the underlying resource and
``aclose`` releases it again, also when the consumer abandons the stream
half way.
"""

import inspect
import logging
import os
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Union

import aiofiles

logger = logging.getLogger(__name__)

# The number of bytes to read at a time from IO streams.
READ_SIZE = 32768


class ChunkStreamer:
    """Base class for single-pass chunked byte producers."""

    read_size = READ_SIZE

    def __init__(self, mtime: float):
        self._mtime = mtime
        self._iterator = None

    @property
    def mtime(self) -> float:
        """The last modified time to report for the response."""
        return self._mtime

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._iterator is not None:
            raise RuntimeError(f"{type(self).__name__} can only be iterated once")
        self._iterator = self._iter_chunks()
        return self._iterator

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        raise NotImplementedError
        yield  # pragma: no cover

    async def wait_input_consumed(self) -> None:
        """Wait until the streamer no longer reads the request body."""

    async def aclose(self) -> None:
        """Release the underlying resource."""
        if self._iterator is not None:
            await self._iterator.aclose()


async def read_chunks(io: Any, read_size: int = READ_SIZE) -> AsyncIterator[bytes]:
    """Read a sync or async readable in chunks until it is exhausted."""
    while True:
        chunk = io.read(read_size)
        if inspect.isawaitable(chunk):
            chunk = await chunk
        if not chunk:
            break
        yield chunk


class IOStreamer(ChunkStreamer):
    """Streams a readable, IO-like object in chunks.

    The object may be synchronous (``read`` returns bytes) or asynchronous
    (``read`` returns an awaitable). It is closed once iteration ends.
    """

    def __init__(self, io: Any, mtime: float, read_size: int = READ_SIZE):
        super().__init__(mtime)
        self._io = io
        self.read_size = read_size

    async def _close_io(self) -> None:
        close = getattr(self._io, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in read_chunks(self._io, self.read_size):
                yield chunk
        finally:
            await self._close_io()

    async def aclose(self) -> None:
        """Release the wrapped object, even if iteration never started."""
        if self._iterator is None:
            # the single pass is spent once the object is closed
            self._iterator = self._iter_chunks()
            await self._close_io()
            return
        await super().aclose()


class FileStreamer(ChunkStreamer):
    """Streams the content of a file in chunks.

    The file is only opened while it is being iterated.
    """

    def __init__(self, path: Union[str, Path], read_size: int = READ_SIZE):
        self.path = Path(path)
        super().__init__(os.stat(self.path).st_mtime)
        self.read_size = read_size

    def to_path(self) -> Optional[Path]:
        """Return the backing file, a zero-copy hint for the server."""
        return self.path

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        async with aiofiles.open(self.path, "rb") as io:
            async for chunk in read_chunks(io, self.read_size):
                yield chunk
