"""Git Smart HTTP framing and header helpers.

Protocol Reference:
- https://git-scm.com/docs/http-protocol
- https://git-scm.com/docs/protocol-common#_pkt_line_format
"""

import time
from email.utils import formatdate
from typing import Dict, Optional

UPLOAD_PACK = "git-upload-pack"
RECEIVE_PACK = "git-receive-pack"
SERVICES = (UPLOAD_PACK, RECEIVE_PACK)

# One year, the longest lifetime HTTP/1.1 recommends
CACHE_FOREVER_SECONDS = 31536000


def pkt_line(data: Optional[bytes]) -> bytes:
    """Format data as a pkt-line.

    A pkt-line is a 4-byte hex length prefix followed by the data.
    Length includes the 4-byte prefix itself.
    """
    if data is None:
        return pkt_flush()
    length = len(data) + 4
    return f"{length:04x}".encode() + data


def pkt_flush() -> bytes:
    """Return a flush packet (0000)."""
    return b"0000"


def service_banner(service: str) -> bytes:
    """Return the framed ``# service=...`` announcement and its flush packet.

    Smart clients expect this before the advertisement produced by
    ``git <service> --advertise-refs``.
    """
    return pkt_line(f"# service={service}\n".encode()) + pkt_flush()


def http_date(timestamp: Optional[float] = None) -> str:
    """Format a POSIX timestamp as an RFC 7231 date."""
    return formatdate(timestamp, usegmt=True)


def no_cache_headers(revalidate: bool = True) -> Dict[str, str]:
    """Headers for content that changes whenever the repository does."""
    return {
        "Expires": "Fri, 01 Jan 1980 00:00:00 GMT",
        "Pragma": "no-cache",
        "Cache-Control": (
            "no-cache, max-age=0, must-revalidate" if revalidate else "no-cache"
        ),
    }


def cache_forever_headers(now: Optional[float] = None) -> Dict[str, str]:
    """Headers for content addressed by its own hash."""
    if now is None:
        now = time.time()
    return {
        "Date": http_date(now),
        "Expires": http_date(now + CACHE_FOREVER_SECONDS),
        "Cache-Control": f"public, max-age={CACHE_FOREVER_SECONDS}",
    }
