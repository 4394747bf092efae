"""Test the adapter for old-style git adapters."""

import io
import zlib

import pytest

from gitway.git.compat import LEGACY_READ_SIZE, CompatibleGitAdapter
from gitway.git.errors import ValidationError


class OldStyleAdapter:
    """Old-style adapter recording how it is called."""

    def __init__(self, settings=None, result=b"result"):
        self.settings = settings or {}
        self.result = result
        self.calls = []

    def upload_pack(self, repository_path, opts):
        self.calls.append(("upload_pack", repository_path, opts))
        return self.result

    def receive_pack(self, repository_path, opts):
        self.calls.append(("receive_pack", repository_path, opts))
        return io.BytesIO(self.result)

    def update_server_info(self, repository_path):
        self.calls.append(("update_server_info", repository_path))

    def get_config_setting(self, name):
        self.calls.append(("get_config_setting", name))
        return self.settings.get(name, "")


async def collect(streamer):
    return [chunk async for chunk in streamer]


async def iterate(*chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def old_adapter():
    return OldStyleAdapter()


@pytest.fixture
def adapter(old_adapter, example_repo):
    adapter = CompatibleGitAdapter(old_adapter)
    adapter.repository_path = str(example_repo)
    return adapter


def test_repository_path_is_a_path(adapter, example_repo):
    assert adapter.repository_path == example_repo
    assert adapter.exists()
    adapter.repository_path = str(example_repo) + "-missing"
    assert not adapter.exists()


@pytest.mark.asyncio
async def test_upload_pack_passes_whole_message(adapter, old_adapter, example_repo):
    streamer = await adapter.handle_pack(
        "git-upload-pack", iterate(b"0032want ", b"abc\n", b"0000")
    )

    assert b"".join(await collect(streamer)) == b"result"
    assert old_adapter.calls == [
        (
            "upload_pack",
            str(example_repo),
            {"msg": b"0032want abc\n0000", "advertise_refs": False},
        )
    ]


@pytest.mark.asyncio
async def test_advertise_refs_sends_no_message(adapter, old_adapter, example_repo):
    streamer = await adapter.handle_pack("git-receive-pack", advertise_refs=True)

    assert b"".join(await collect(streamer)) == b"result"
    assert old_adapter.calls == [
        ("receive_pack", str(example_repo), {"msg": b"", "advertise_refs": True})
    ]


@pytest.mark.asyncio
async def test_result_is_streamed_in_small_chunks(example_repo):
    old_adapter = OldStyleAdapter(result=b"z" * (LEGACY_READ_SIZE * 2 + 1))
    adapter = CompatibleGitAdapter(old_adapter)
    adapter.repository_path = example_repo

    streamer = await adapter.handle_pack("git-receive-pack", iterate(b""))

    assert [len(chunk) for chunk in await collect(streamer)] == [
        LEGACY_READ_SIZE,
        LEGACY_READ_SIZE,
        1,
    ]


@pytest.mark.asyncio
async def test_update_server_info(adapter, old_adapter, example_repo):
    await adapter.update_server_info()
    assert old_adapter.calls == [("update_server_info", str(example_repo))]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "settings,pull,push",
    [
        ({}, True, False),
        ({"uploadpack": "false", "receivepack": "true"}, False, True),
        ({"uploadpack": "true", "receivepack": "false"}, True, False),
    ],
)
async def test_permissions(example_repo, settings, pull, push):
    adapter = CompatibleGitAdapter(OldStyleAdapter(settings))
    adapter.repository_path = example_repo

    assert await adapter.allow_pull() is pull
    assert await adapter.allow_push() is push


@pytest.mark.asyncio
async def test_file(adapter):
    streamer = adapter.file("HEAD")
    assert b"".join(await collect(streamer)) == b"ref: refs/heads/main\n"
    assert adapter.file("objects/info/http-alternates") is None


@pytest.mark.asyncio
async def test_invalid_compressed_message(adapter, old_adapter):
    async def corrupt():
        yield b"0000"
        raise zlib.error("Error -3 while decompressing data: incorrect header check")

    with pytest.raises(ValidationError):
        await adapter.handle_pack("git-upload-pack", corrupt())
    assert old_adapter.calls == []
