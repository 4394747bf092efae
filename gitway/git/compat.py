"""Support for old-style git adapters.

Old-style adapters are plain objects with blocking methods::

    upload_pack(repository_path, opts) -> bytes | readable
    receive_pack(repository_path, opts) -> bytes | readable
    update_server_info(repository_path)
    get_config_setting(name) -> str

``opts`` is a dict with the whole client message under ``"msg"`` and the
``"advertise_refs"`` flag. They are responsible for their own framing,
including the service banner.
"""

import asyncio
import io
import logging
import time
import zlib
from pathlib import Path
from typing import Any, AsyncIterable, Optional, Union

from gitway.git.errors import ValidationError
from gitway.git.streamer import FileStreamer, IOStreamer

logger = logging.getLogger(__name__)

# Chunk size used for the output of old-style adapters
LEGACY_READ_SIZE = 8192


class CompatibleGitAdapter:
    """Expose an old-style git adapter through the repository adapter interface."""

    def __init__(self, adapter: Any):
        self._adapter = adapter
        self._repository_path: Optional[Path] = None

    @property
    def repository_path(self) -> Optional[Path]:
        """The path to the repository on which to operate."""
        return self._repository_path

    @repository_path.setter
    def repository_path(self, path: Union[str, Path]) -> None:
        self._repository_path = Path(path)

    def exists(self) -> bool:
        return self._repository_path is not None and self._repository_path.exists()

    async def handle_pack(
        self,
        pack_type: str,
        io_in: Optional[AsyncIterable[bytes]] = None,
        advertise_refs: bool = False,
    ) -> IOStreamer:
        """Run the pack exchange through the wrapped adapter."""
        msg = b""
        if not advertise_refs and io_in is not None:
            # old-style adapters take the client message in one piece
            try:
                msg = b"".join([chunk async for chunk in io_in])
            except zlib.error as e:
                logger.info(f"Invalid compressed body for {pack_type}: {e}")
                raise ValidationError() from e
        method = getattr(
            self._adapter, pack_type[len("git-") :].replace("-", "_")
        )
        result = await asyncio.to_thread(
            method,
            str(self._repository_path),
            {"msg": msg, "advertise_refs": advertise_refs},
        )
        if isinstance(result, (bytes, bytearray)):
            result = io.BytesIO(result)
        return IOStreamer(result, time.time(), read_size=LEGACY_READ_SIZE)

    def file(self, path: Union[str, Path]) -> Optional[FileStreamer]:
        """Return a streamer for a file in the repository, or None."""
        full_path = self._repository_path / path
        if not full_path.is_file():
            return None
        return FileStreamer(full_path)

    async def update_server_info(self) -> None:
        await asyncio.to_thread(
            self._adapter.update_server_info, str(self._repository_path)
        )

    async def allow_push(self) -> bool:
        """Check whether pushes should be allowed."""
        setting = await asyncio.to_thread(
            self._adapter.get_config_setting, "receivepack"
        )
        return setting == "true"

    async def allow_pull(self) -> bool:
        """Check whether pulls should be allowed."""
        setting = await asyncio.to_thread(
            self._adapter.get_config_setting, "uploadpack"
        )
        return setting != "false"
