"""Provide common pytest fixtures."""

import os
import shutil
import subprocess

import pytest
from fastapi.testclient import TestClient

from gitway.core import ServerConfig
from gitway.server import create_app

from . import (
    FAKE_GIT_SCRIPT,
    IDX_PATH,
    LOOSE_OBJECT_PATH,
    PACK_PATH,
)

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Gitway Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Gitway Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


@pytest.fixture
def repositories_root(tmp_path):
    """Create an empty directory to serve repositories from."""
    root = tmp_path / "repositories"
    root.mkdir()
    return root


@pytest.fixture
def example_repo(repositories_root):
    """Lay out a bare repository by hand.

    Only the files served to dumb clients are created; their content is
    arbitrary bytes since the server never parses them.
    """
    repo = repositories_root / "example_repo.git"
    (repo / "objects" / "info").mkdir(parents=True)
    (repo / "objects" / "pack").mkdir()
    (repo / "refs" / "heads").mkdir(parents=True)
    (repo / "HEAD").write_bytes(b"ref: refs/heads/main\n")
    (repo / "objects" / "info" / "packs").write_bytes(
        b"P pack-62c9f443d8405cd6da92dcbb4f849cc01a339c06.pack\n\n"
    )
    (repo / "objects" / "info" / "alternates").write_bytes(b"/srv/git/shared/objects\n")
    loose_object = repo / LOOSE_OBJECT_PATH
    loose_object.parent.mkdir(parents=True)
    loose_object.write_bytes(os.urandom(1234))
    (repo / PACK_PATH).write_bytes(os.urandom(100000))
    (repo / IDX_PATH).write_bytes(os.urandom(4321))
    return repo


@pytest.fixture
def fake_git(tmp_path):
    """Install a shell script standing in for the git executable."""
    script = tmp_path / "bin" / "git"
    script.parent.mkdir()
    script.write_text(FAKE_GIT_SCRIPT)
    script.chmod(0o755)
    return script


@pytest.fixture
def make_client(repositories_root, fake_git):
    """Return a factory for test clients with a given configuration."""

    def _make_client(allow_pull=True, allow_push=True, **options):
        options.setdefault("root", repositories_root)
        options.setdefault("git_path", str(fake_git))
        config = ServerConfig(allow_pull=allow_pull, allow_push=allow_push, **options)
        return TestClient(create_app(config))

    return _make_client


@pytest.fixture
def client(make_client, example_repo):
    """Create a test client allowing both pulls and pushes."""
    return make_client()


def run_git(*args, cwd=None):
    """Run the real git executable and return its output."""
    env = dict(os.environ)
    env.update(GIT_ENV)
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    return result.stdout.decode().strip()


@pytest.fixture
def git_repo(repositories_root, tmp_path):
    """Create a real bare repository with one packed commit.

    Skipped when git is not installed.
    """
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    work = tmp_path / "work"
    run_git("init", "-q", str(work))
    run_git("symbolic-ref", "HEAD", "refs/heads/main", cwd=work)
    (work / "README.md").write_text("gitway test repository\n")
    run_git("add", "README.md", cwd=work)
    run_git("commit", "-q", "-m", "Initial commit", cwd=work)

    repo = repositories_root / "example_repo.git"
    run_git("clone", "-q", "--bare", str(work), str(repo))
    run_git("repack", "-a", "-d", "-q", cwd=repo)
    run_git("update-server-info", cwd=repo)
    return repo
