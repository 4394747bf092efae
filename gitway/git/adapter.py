"""Repository adapter that runs the git executable.

Pack negotiation is delegated to ``git upload-pack`` and
``git receive-pack`` in stateless-RPC mode: one process per HTTP request,
fed with the request body and read for the response body.
"""

import asyncio
import contextlib
import logging
import os
import time
import zlib
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

from starlette.requests import ClientDisconnect

from gitway.core.metrics import GIT_PROCESSES_ACTIVE, record_launch
from gitway.git.errors import SubprocessLaunchError
from gitway.git.protocol import service_banner
from gitway.git.streamer import READ_SIZE, ChunkStreamer, FileStreamer

logger = logging.getLogger(__name__)


class ProcessStreamer(ChunkStreamer):
    """Streams the output of a running git process.

    When client input is given it is copied into the process by a separate
    task while the output is read, so neither side can fill a pipe buffer
    and stall the other. The process is killed and reaped when the stream
    is closed before the process has finished.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: str,
        io_in: Optional[AsyncIterable[bytes]] = None,
        banner: bytes = b"",
        read_size: int = READ_SIZE,
    ):
        super().__init__(time.time())
        self.process = process
        self.command = command
        self.read_size = read_size
        self._io_in = io_in
        self._banner = banner
        self._released = False
        self._input_consumed = asyncio.Event()
        if io_in is None:
            self._input_consumed.set()
        GIT_PROCESSES_ACTIVE.labels(command=command).inc()

    async def wait_input_consumed(self) -> None:
        await self._input_consumed.wait()

    async def _feed(self) -> None:
        """Copy client input into the process, then close its input."""
        stdin = self.process.stdin
        try:
            async for data in self._io_in:
                for offset in range(0, len(data), self.read_size):
                    stdin.write(data[offset : offset + self.read_size])
                    await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug(f"git {self.command} stopped reading its input")
        except zlib.error as e:
            # truncated input is useless to git
            logger.warning(f"Invalid compressed body for git {self.command}: {e}")
            self._kill()
        except ClientDisconnect:
            logger.info(f"Client disconnected during git {self.command}")
            self._kill()
            raise
        finally:
            stdin.close()
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await stdin.wait_closed()
            self._input_consumed.set()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        feeder = None
        try:
            if self._banner:
                yield self._banner
            if self._io_in is not None:
                feeder = asyncio.create_task(self._feed())
            while True:
                chunk = await self.process.stdout.read(self.read_size)
                if not chunk:
                    break
                yield chunk
            if feeder is not None:
                await feeder
            returncode = await self.process.wait()
            if returncode != 0:
                logger.warning(f"git {self.command} exited with status {returncode}")
        finally:
            if feeder is not None and not feeder.done():
                feeder.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await feeder
            await self._release()

    def _kill(self) -> None:
        if self.process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._kill()
        await self.process.wait()
        GIT_PROCESSES_ACTIVE.labels(command=self.command).dec()

    async def aclose(self) -> None:
        """Stop the stream and reap the process."""
        await super().aclose()
        await self._release()


class GitAdapter:
    """Adapter running the git executable against one repository.

    A new adapter is created for every request; ``repository_path`` is set
    once the request path has been validated.
    """

    def __init__(self, git_path: str = "git"):
        self.repository_path: Optional[Path] = None
        self.git_path = git_path

    def exists(self) -> bool:
        """Check whether the repository exists."""
        return self.repository_path is not None and self.repository_path.exists()

    def file(self, path: Union[str, Path]) -> Optional[FileStreamer]:
        """Return a streamer for a file in the repository, or None."""
        full_path = self.repository_path / path
        if not full_path.is_file():
            return None
        return FileStreamer(full_path)

    async def handle_pack(
        self,
        pack_type: str,
        io_in: Optional[AsyncIterable[bytes]] = None,
        advertise_refs: bool = False,
    ) -> ProcessStreamer:
        """Start a pack exchange and return a streamer of its output.

        In advertise mode no input is read and the output is prefixed with
        the service banner.
        """
        args = ["--stateless-rpc"]
        banner = b""
        if advertise_refs:
            banner = service_banner(pack_type)
            args.append("--advertise-refs")
            io_in = None
        args.append(str(self.repository_path))
        command = pack_type[len("git-") :] if pack_type.startswith("git-") else pack_type
        process = await self._spawn(
            command,
            args,
            stdin=(
                asyncio.subprocess.PIPE
                if io_in is not None
                else asyncio.subprocess.DEVNULL
            ),
        )
        return ProcessStreamer(process, command, io_in=io_in, banner=banner)

    async def update_server_info(self) -> None:
        """Regenerate the files dumb HTTP clients rely on."""
        await self._command("update-server-info", [], cwd=self.repository_path)

    async def config(self, key: str) -> str:
        """Return a repository-local configuration value, or ''."""
        output = await self._command(
            "config", ["--local", key], cwd=self.repository_path
        )
        return output.decode("utf-8", errors="replace").strip()

    async def allow_pull(self) -> bool:
        """Check whether the repository allows git-upload-pack."""
        return await self.config("http.uploadpack") != "false"

    async def allow_push(self) -> bool:
        """Check whether the repository allows git-receive-pack."""
        return await self.config("http.receivepack") == "true"

    def _environment(self, cwd: Optional[Path]) -> Optional[dict]:
        if cwd is None:
            return None
        # never let git discover a repository above the one requested
        env = dict(os.environ)
        env["GIT_CEILING_DIRECTORIES"] = str(Path(cwd).parent)
        return env

    async def _spawn(
        self,
        command: str,
        args: List[str],
        stdin=asyncio.subprocess.DEVNULL,
        cwd: Optional[Path] = None,
    ) -> asyncio.subprocess.Process:
        try:
            process = await asyncio.create_subprocess_exec(
                self.git_path,
                command,
                *args,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                cwd=cwd,
                env=self._environment(cwd),
            )
        except OSError as e:
            record_launch(command, started=False)
            logger.error(f"Failed to launch {self.git_path} {command}: {e}")
            raise SubprocessLaunchError(self.git_path, str(e)) from e
        record_launch(command, started=True)
        logger.debug(f"Started {self.git_path} {command} {' '.join(args)}")
        return process

    async def _command(
        self, command: str, args: List[str], cwd: Optional[Path] = None
    ) -> bytes:
        """Run git without streaming I/O and return its output."""
        process = await self._spawn(command, args, cwd=cwd)
        try:
            stdout, _ = await process.communicate()
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
        if process.returncode != 0:
            logger.debug(f"git {command} exited with status {process.returncode}")
        return stdout


class GitAdapterFactory:
    """Creates GitAdapter instances using a given git executable."""

    def __init__(self, git_path: str = "git"):
        self.git_path = git_path

    def create(self) -> GitAdapter:
        return GitAdapter(git_path=self.git_path)

    __call__ = create
