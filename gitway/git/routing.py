"""Route table for the git HTTP endpoints.

The table is fixed at import time. A request is matched against the rules
in order and the first rule whose pattern matches the path wins, even when
its verb differs from the request method.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Pattern, Sequence, Union
from urllib.parse import unquote

from gitway.git.errors import MethodError, NotFoundError, ValidationError
from gitway.utils import is_safe_path


class RouteKind(str, Enum):
    """Represent the handler a route dispatches to."""

    pack = "pack"
    info_refs = "info_refs"
    text_file = "text_file"
    info_packs = "info_packs"
    loose_object = "loose_object"
    pack_file = "pack_file"
    idx_file = "idx_file"


class Route(NamedTuple):
    """Represent one routing rule."""

    pattern: Pattern
    verb: str
    kind: RouteKind


@dataclass(frozen=True)
class RouteMatch:
    """Represent a routed request.

    ``target`` is the service name for pack routes and the file path
    relative to the repository for every other route.
    """

    route: Route
    repository: str
    target: str

    @property
    def kind(self) -> RouteKind:
        return self.route.kind


ROUTES = (
    Route(
        re.compile(r"^/(.*?)/(git-upload-pack|git-receive-pack)$"),
        "POST",
        RouteKind.pack,
    ),
    Route(re.compile(r"^/(.*?)/(info/refs)$"), "GET", RouteKind.info_refs),
    Route(
        re.compile(
            r"^/(.*?)/(HEAD|objects/info/(?:alternates|http-alternates|(?!packs$)[^/]+))$"
        ),
        "GET",
        RouteKind.text_file,
    ),
    Route(re.compile(r"^/(.*?)/(objects/info/packs)$"), "GET", RouteKind.info_packs),
    Route(
        re.compile(r"^/(.*?)/(objects/[0-9a-f]{2}/[0-9a-f]{38})$"),
        "GET",
        RouteKind.loose_object,
    ),
    Route(
        re.compile(r"^/(.*?)/(objects/pack/pack-[0-9a-f]{40}\.pack)$"),
        "GET",
        RouteKind.pack_file,
    ),
    Route(
        re.compile(r"^/(.*?)/(objects/pack/pack-[0-9a-f]{40}\.idx)$"),
        "GET",
        RouteKind.idx_file,
    ),
)

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def sanitize_path(path: str) -> str:
    """Percent-decode a request path and collapse repeated separators."""
    return _REPEATED_SEPARATORS.sub("/", unquote(path))


def has_dot_segment(path: str) -> bool:
    """Check whether a path has a ``.`` or ``..`` segment."""
    return any(segment in (".", "..") for segment in path.split("/"))


def match_route(
    method: str,
    path: str,
    http_version: str = "1.1",
    routes: Sequence[Route] = ROUTES,
) -> RouteMatch:
    """Match a request against the route table.

    Raises:
        NotFoundError: no rule matches the path.
        MethodError: the first matching rule expects another verb.
        ValidationError: the path contains a ``.`` or ``..`` segment or a
            NUL byte.
    """
    path = sanitize_path(path)
    for route in routes:
        match = route.pattern.match(path)
        if match is None:
            continue
        if route.verb != method:
            raise MethodError(route.verb, http_version)
        repository, target = match.group(1), match.group(2)
        if not repository or "\x00" in path:
            raise ValidationError()
        if has_dot_segment(repository) or has_dot_segment(target):
            raise ValidationError()
        return RouteMatch(route=route, repository=repository, target=target)
    raise NotFoundError()


def resolve_repository(root: Union[str, Path], repository: str) -> Path:
    """Resolve a repository identifier to an absolute path inside the root.

    The root must already be a real (symlink free) absolute path.
    """
    root = str(root)
    candidate = os.path.abspath(os.path.join(root, repository))
    if not is_safe_path(root, candidate):
        raise ValidationError()
    return Path(candidate)
