"""Test pkt-line framing and cache headers."""

from email.utils import parsedate_to_datetime

from gitway.git.protocol import (
    CACHE_FOREVER_SECONDS,
    cache_forever_headers,
    http_date,
    no_cache_headers,
    pkt_flush,
    pkt_line,
    service_banner,
)


def test_pkt_line_length_includes_prefix():
    assert pkt_line(b"a\n") == b"0006a\n"
    assert pkt_line(b"") == b"0004"
    assert pkt_line(None) == b"0000"
    assert pkt_flush() == b"0000"


def test_pkt_line_uses_lowercase_hex():
    assert pkt_line(b"x" * 250) == b"00fe" + b"x" * 250


def test_service_banner_upload_pack():
    banner = service_banner("git-upload-pack")
    assert banner == b"001e# service=git-upload-pack\n0000"


def test_service_banner_receive_pack():
    banner = service_banner("git-receive-pack")
    assert banner == b"001f# service=git-receive-pack\n0000"


def test_no_cache_headers():
    headers = no_cache_headers()
    assert headers["Expires"] == "Fri, 01 Jan 1980 00:00:00 GMT"
    assert headers["Pragma"] == "no-cache"
    assert headers["Cache-Control"] == "no-cache, max-age=0, must-revalidate"
    assert no_cache_headers(revalidate=False)["Cache-Control"] == "no-cache"


def test_no_cache_headers_are_fresh_dicts():
    headers = no_cache_headers()
    headers["Last-Modified"] = "now"
    assert "Last-Modified" not in no_cache_headers()


def test_cache_forever_headers():
    now = 1700000000
    headers = cache_forever_headers(now)
    assert headers["Cache-Control"] == "public, max-age=31536000"
    assert parsedate_to_datetime(headers["Date"]).timestamp() == now
    assert (
        parsedate_to_datetime(headers["Expires"]).timestamp()
        == now + CACHE_FOREVER_SECONDS
    )


def test_http_date_format():
    assert http_date(0) == "Thu, 01 Jan 1970 00:00:00 GMT"
