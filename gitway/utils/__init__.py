"""Provide utility functions for gitway."""
import os
import zlib
from typing import AsyncIterator

import shortuuid
from starlette.requests import Request


def random_id(length: int = 12) -> str:
    """Generate a random ID."""
    return shortuuid.ShortUUID().random(length=length)


def is_safe_path(basedir: str, path: str, follow_symlinks: bool = True) -> bool:
    """Check if the file path is safe."""
    # resolves symbolic links
    if follow_symlinks:
        matchpath = os.path.realpath(path)
    else:
        matchpath = os.path.abspath(path)
    return basedir == os.path.commonpath((basedir, matchpath))


class GzipRequest(Request):
    """Request whose body stream is gunzipped on the fly.

    Only bodies declaring ``Content-Encoding: gzip`` are decompressed; all
    other bodies pass through unchanged. Decompression is incremental so the
    whole body is never held in memory.
    """

    def is_gzipped(self) -> bool:
        """Check whether the body declares gzip encoding."""
        return any(
            "gzip" in value.lower() for value in self.headers.getlist("Content-Encoding")
        )

    async def stream(self) -> AsyncIterator[bytes]:
        """Get the (decompressed) body stream."""
        if not self.is_gzipped():
            async for chunk in super().stream():
                yield chunk
            return

        decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
        async for chunk in super().stream():
            if not chunk:
                continue
            data = decompressor.decompress(chunk)
            if data:
                yield data
        tail = decompressor.flush()
        if tail:
            yield tail
