"""Errors raised while serving git HTTP requests.

HTTP errors subclass FastAPI's HTTPException so the default exception
handler renders them. Launch failures are not HTTP errors: they propagate
to the server error middleware as a 500.
"""

from typing import Optional

from fastapi import HTTPException


class ValidationError(HTTPException):
    """The request path is malformed or unsafe."""

    def __init__(self, detail: str = "Bad Request"):
        super().__init__(status_code=400, detail=detail)


class PolicyError(HTTPException):
    """The operation is not permitted for this request."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=403, detail=detail)


class NotFoundError(HTTPException):
    """No route, repository or file matches the request."""

    def __init__(self, detail: str = "Not Found"):
        super().__init__(status_code=404, detail=detail)


class MethodError(HTTPException):
    """The path matched a route registered for another verb.

    HTTP/1.1 clients get a 405 with an ``Allow`` header; older protocol
    versions have no 405 and get a plain 400.
    """

    def __init__(self, allowed: str, http_version: Optional[str] = "1.1"):
        self.allowed = allowed
        if http_version == "1.1":
            super().__init__(
                status_code=405,
                detail="Method Not Allowed",
                headers={"Allow": allowed},
            )
        else:
            super().__init__(status_code=400, detail="Bad Request")


class SubprocessLaunchError(RuntimeError):
    """The git executable could not be started."""

    def __init__(self, git_path: str, reason: str):
        self.git_path = git_path
        super().__init__(f"Failed to launch git executable {git_path!r}: {reason}")
