"""Git Smart HTTP transport backed by the git executable.

This module translates HTTP requests into git repository operations and
streams the results back without buffering whole payloads.

Key components:
- GitAdapter: Runs git in stateless-RPC mode and relays its I/O
- CompatibleGitAdapter: Exposes old-style adapters through the same interface
- AccessPolicy: Decides whether pulls and pushes are allowed
- FileStreamer / IOStreamer: Lazy chunked response bodies
- create_git_router: FastAPI router implementing the protocol endpoints
"""

from gitway.git.access import AccessPolicy
from gitway.git.adapter import GitAdapter, GitAdapterFactory, ProcessStreamer
from gitway.git.compat import CompatibleGitAdapter
from gitway.git.http import GitRequestDispatcher, create_git_router
from gitway.git.streamer import FileStreamer, IOStreamer

__all__ = [
    "AccessPolicy",
    "GitAdapter",
    "GitAdapterFactory",
    "ProcessStreamer",
    "CompatibleGitAdapter",
    "GitRequestDispatcher",
    "create_git_router",
    "FileStreamer",
    "IOStreamer",
]
