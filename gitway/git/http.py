"""Git Smart HTTP protocol endpoints for FastAPI.

This module implements the Git Smart HTTP protocol on top of the git
executable, plus the static file routes used by "dumb" HTTP clients.

Protocol Reference:
- https://git-scm.com/docs/http-protocol
- https://git-scm.com/docs/git-http-backend
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from starlette.requests import ClientDisconnect
from starlette.types import Receive, Scope, Send

from gitway.core import ServerConfig
from gitway.core.metrics import record_request
from gitway.git.access import AccessPolicy
from gitway.git.errors import NotFoundError, PolicyError
from gitway.git.protocol import (
    SERVICES,
    cache_forever_headers,
    http_date,
    no_cache_headers,
)
from gitway.git.routing import RouteKind, RouteMatch, match_route, resolve_repository
from gitway.git.streamer import ChunkStreamer
from gitway.utils import GzipRequest, random_id

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class GitStreamingResponse(StreamingResponse):
    """Streaming response that owns a chunk streamer.

    The streamer is closed on every exit path. Like the base class, a task
    listens for ``http.disconnect`` on ``receive`` and stops the response
    when the client goes away, since servers may silently drop what is
    sent after that. The listener only starts once the streamer has
    consumed the request body: a pack exchange reads the body while the
    response is being sent, and a second consumer would steal body
    messages.
    """

    def __init__(
        self,
        streamer: ChunkStreamer,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        media_type: Optional[str] = None,
    ):
        self.streamer = streamer
        super().__init__(
            streamer, status_code=status_code, headers=headers, media_type=media_type
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        sender = asyncio.create_task(self.send_body(scope, send))
        listener = asyncio.create_task(self.listen_for_disconnect(receive))
        tasks = [sender, listener]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            await self.streamer.aclose()
        for result in results:
            if isinstance(result, Exception):
                raise result

        if not sender.cancelled() and self.background is not None:
            await self.background()

    async def send_body(self, scope: Scope, send: Send) -> None:
        to_path = getattr(self.streamer, "to_path", None)
        path = to_path() if to_path is not None else None
        try:
            if path is not None and "http.response.pathsend" in scope.get(
                "extensions", {}
            ):
                await send(
                    {
                        "type": "http.response.start",
                        "status": self.status_code,
                        "headers": self.raw_headers,
                    }
                )
                await send({"type": "http.response.pathsend", "path": str(path)})
            else:
                await self.stream_response(send)
        except (OSError, ClientDisconnect) as e:
            logger.info(f"Client went away while streaming the response: {e}")

    async def listen_for_disconnect(self, receive: Receive) -> None:
        await self.streamer.wait_input_consumed()
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                logger.info("Client disconnected, stopping the response")
                break


@dataclass
class RequestContext:
    """Represent the state of one in-flight request."""

    request: Request
    match: RouteMatch
    repository_path: Path
    adapter: Any
    policy: AccessPolicy
    request_id: str = field(default_factory=random_id)


def request_path(request: Request) -> str:
    """Return the request path as sent by the client (still percent-encoded)."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.scope["path"]


class GitRequestDispatcher:
    """Dispatch routed requests to the git protocol handlers.

    One dispatcher serves all requests; everything request specific lives
    in the RequestContext created for each call.
    """

    def __init__(self, config: ServerConfig):
        self.config = config

    def create_context(self, request: Request, match: RouteMatch) -> RequestContext:
        """Resolve the repository and create the per-request state."""
        repository_path = resolve_repository(self.config.root, match.repository)
        adapter = self.config.create_adapter()
        adapter.repository_path = repository_path
        if not adapter.exists():
            raise NotFoundError()
        policy = AccessPolicy(
            adapter,
            allow_pull=self.config.allow_pull,
            allow_push=self.config.allow_push,
        )
        return RequestContext(
            request=request,
            match=match,
            repository_path=repository_path,
            adapter=adapter,
            policy=policy,
        )

    async def dispatch(self, request: Request) -> Response:
        """Route a request and run its handler."""
        route = "unmatched"
        try:
            match = match_route(
                request.method,
                request_path(request),
                request.scope.get("http_version", "1.1"),
            )
            route = match.kind.value
            context = self.create_context(request, match)
            logger.info(
                f"[{context.request_id}] {request.method} {match.repository} "
                f"{match.target} ({route})"
            )
            response = await self.handle(context)
        except HTTPException as e:
            record_request(route, e.status_code)
            raise
        record_request(route, response.status_code)
        return response

    async def handle(self, context: RequestContext) -> Response:
        kind = context.match.kind
        if kind == RouteKind.pack:
            return await self.handle_pack(context)
        if kind == RouteKind.info_refs:
            return await self.info_refs(context)
        if kind == RouteKind.text_file:
            return self.send_file(context, "text/plain", no_cache_headers())
        if kind == RouteKind.info_packs:
            return self.send_file(
                context,
                "text/plain; charset=utf-8",
                no_cache_headers(revalidate=False),
            )
        if kind == RouteKind.loose_object:
            return self.send_file(
                context, "application/x-git-loose-object", cache_forever_headers()
            )
        if kind == RouteKind.pack_file:
            return self.send_file(
                context, "application/x-git-packed-objects", cache_forever_headers()
            )
        if kind == RouteKind.idx_file:
            return self.send_file(
                context,
                "application/x-git-packed-objects-toc",
                cache_forever_headers(),
            )
        raise NotFoundError()

    async def handle_pack(self, context: RequestContext) -> Response:
        """Run git-upload-pack or git-receive-pack on the request body."""
        service = context.match.target
        content_type = (
            context.request.headers.get("content-type", "").split(";", 1)[0].strip()
        )
        if content_type.lower() != f"application/x-{service}-request":
            logger.info(
                f"[{context.request_id}] Rejected {service}: "
                f"unexpected content type {content_type!r}"
            )
            raise PolicyError()
        if not await context.policy.allows(service):
            logger.info(f"[{context.request_id}] Rejected {service}: not allowed")
            raise PolicyError()

        request = GzipRequest(context.request.scope, context.request.receive)
        streamer = await context.adapter.handle_pack(service, request.stream())
        return GitStreamingResponse(
            streamer, media_type=f"application/x-{service}-result"
        )

    async def info_refs(self, context: RequestContext) -> Response:
        """Advertise refs to smart clients, or serve info/refs to dumb ones."""
        service = context.request.query_params.get("service")
        if service is None:
            return await self.dumb_info_refs(context)
        # disallowed and unknown services are indistinguishable on purpose
        if service not in SERVICES or not await context.policy.allows(service):
            raise NotFoundError()
        streamer = await context.adapter.handle_pack(service, advertise_refs=True)
        return GitStreamingResponse(
            streamer,
            headers=no_cache_headers(),
            media_type=f"application/x-{service}-advertisement",
        )

    async def dumb_info_refs(self, context: RequestContext) -> Response:
        await context.adapter.update_server_info()
        return self.send_file(context, "text/plain", no_cache_headers())

    def send_file(
        self, context: RequestContext, content_type: str, headers: Dict[str, str]
    ) -> Response:
        """Stream a repository file, or raise NotFoundError."""
        streamer = context.adapter.file(context.match.target)
        if streamer is None:
            raise NotFoundError()
        headers["Last-Modified"] = http_date(streamer.mtime)
        return GitStreamingResponse(streamer, headers=headers, media_type=content_type)


def create_git_router(config: ServerConfig) -> APIRouter:
    """Create a FastAPI router for the Git HTTP protocol.

    Args:
        config: The server configuration

    Returns:
        FastAPI router with a catch-all endpoint driven by the git route table
    """
    router = APIRouter()
    dispatcher = GitRequestDispatcher(config)

    @router.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def git_http(request: Request):
        """Serve a git HTTP request."""
        return await dispatcher.dispatch(request)

    return router
