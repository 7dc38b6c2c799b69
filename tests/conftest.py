"""Shared fixtures: descriptor factory and an in-memory clone fetcher."""

import os
import threading

import pytest

from regbrowse.errors import CloneFailed
from regbrowse.fetcher import CloneFetcher
from regbrowse.models import ProjectDescriptor


class FakeCloneFetcher(CloneFetcher):
    """CloneFetcher whose clone() writes files from a dict instead of running git.

    repos maps a normalized URL to {repo-relative path: bytes}; a URL mapped to
    None (or missing) fails to clone.
    """

    def __init__(self, repos: dict, scratch_root: str | None = None):
        super().__init__(scratch_root=scratch_root)
        self.repos = repos
        self.clones = []
        self.scratch_dirs = []
        self._lock = threading.Lock()

    def clone(self, url: str, branch: str, dest: str) -> None:
        with self._lock:
            self.clones.append(url)
            self.scratch_dirs.append(dest)
        files = self.repos.get(url)
        if files is None:
            raise CloneFailed(url, branch, "repository not found")
        os.makedirs(dest)
        for relative, content in files.items():
            path = os.path.join(dest, relative)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(content)


@pytest.fixture
def make_descriptor():
    def _make(**overrides) -> ProjectDescriptor:
        fields = {
            "app_id": "bamachrn",
            "job_id": "python",
            "desired_tag": "3.6",
            "git_url": "https://github.com/bamachrn/container-python",
            "git_branch": "master",
            "git_path": "/3.6/",
            "target_file": "Dockerfile",
            "build_number": "1",
        }
        fields.update(overrides)
        return ProjectDescriptor(**fields)

    return _make


@pytest.fixture
def cache_root(tmp_path) -> str:
    return str(tmp_path / "cache")


@pytest.fixture
def scratch_root(tmp_path) -> str:
    path = tmp_path / "scratch"
    path.mkdir()
    return str(path)


@pytest.fixture
def fake_fetcher():
    def _make(repos: dict, scratch_root: str | None = None) -> FakeCloneFetcher:
        return FakeCloneFetcher(repos, scratch_root=scratch_root)

    return _make
