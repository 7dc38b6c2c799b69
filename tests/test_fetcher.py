"""Tests for the raw-URL and clone fetch strategies."""

import os
import subprocess

import pytest
import requests

from regbrowse.errors import CloneFailed, FetchFailed, FileNotFound, UnsupportedHost
from regbrowse.fetcher import CloneFetcher, RawFileFetcher, ScratchClone, fetch_readme
from regbrowse.models import FetchResult

REPO = "https://github.com/bamachrn/container-python"


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b""):
        self.status_code = status_code
        self.content = content


class FakeSession:
    def __init__(self, pages: dict):
        self.pages = pages
        self.requested = []

    def get(self, url, timeout=None):
        self.requested.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FakeResponse(404)
        return FakeResponse(200, page)


class TestRawFileFetcher:
    def test_success(self, make_descriptor):
        url = "https://raw.githubusercontent.com/bamachrn/container-python/master/3.6/Dockerfile"
        fetcher = RawFileFetcher(session=FakeSession({url: b"FROM centos:7\n"}))

        result = fetcher.fetch(make_descriptor(), "Dockerfile")

        assert result.ok
        assert result.content == b"FROM centos:7\n"
        assert result.source == url

    def test_non_200_is_fetch_failed_with_url(self, make_descriptor):
        fetcher = RawFileFetcher(session=FakeSession({}))

        result = fetcher.fetch(make_descriptor(), "Dockerfile")

        assert not result.ok
        assert isinstance(result.error, FetchFailed)
        assert "3.6/Dockerfile" in result.error.url

    def test_network_error_is_fetch_failed(self, make_descriptor):
        url = "https://raw.githubusercontent.com/bamachrn/container-python/master/3.6/Dockerfile"
        session = FakeSession({url: requests.ConnectionError("boom")})

        result = RawFileFetcher(session=session).fetch(make_descriptor(), "Dockerfile")

        assert isinstance(result.error, FetchFailed)

    def test_unsupported_host_is_returned_not_raised(self, make_descriptor):
        session = FakeSession({})
        result = RawFileFetcher(session=session).fetch(make_descriptor(git_url="https://pagure.io/x"), "Dockerfile")

        assert isinstance(result.error, UnsupportedHost)
        assert session.requested == []


class TestCloneFetcher:
    def test_reads_file_and_removes_scratch(self, make_descriptor, fake_fetcher, scratch_root):
        fetcher = fake_fetcher({REPO: {"3.6/Dockerfile": b"FROM centos:7\n"}}, scratch_root)

        result = fetcher.fetch(make_descriptor(), "Dockerfile")

        assert result.ok
        assert result.content == b"FROM centos:7\n"
        assert result.source == "3.6/Dockerfile"
        assert not os.path.exists(fetcher.scratch_dirs[0])

    def test_missing_file(self, make_descriptor, fake_fetcher, scratch_root):
        fetcher = fake_fetcher({REPO: {"README.md": b"hi"}}, scratch_root)

        result = fetcher.fetch(make_descriptor(), "Dockerfile")

        assert isinstance(result.error, FileNotFound)

    def test_clone_failure_skips_extraction(self, make_descriptor, fake_fetcher, scratch_root):
        fetcher = fake_fetcher({}, scratch_root)

        with fetcher.checkout(make_descriptor()) as clone:
            assert not clone.ok
            first = clone.fetch("Dockerfile")
            second = clone.fetch("README.md", "/")

        assert isinstance(first.error, CloneFailed)
        assert second.error is first.error
        assert not os.path.exists(os.path.join(scratch_root, "bamachrn", "python", "3.6"))

    def test_scratch_removed_when_block_raises(self, make_descriptor, fake_fetcher, scratch_root):
        fetcher = fake_fetcher({REPO: {"3.6/Dockerfile": b"x"}}, scratch_root)

        try:
            with fetcher.checkout(make_descriptor()):
                raise RuntimeError("reader crashed")
        except RuntimeError:
            pass

        assert not os.path.exists(fetcher.scratch_dirs[0])

    def test_owns_temporary_root_without_scratch_root(self, make_descriptor, fake_fetcher):
        fetcher = fake_fetcher({REPO: {"3.6/Dockerfile": b"x"}})

        with fetcher.checkout(make_descriptor()) as clone:
            root = clone.root

        assert not os.path.exists(root)

    def test_git_command(self, make_descriptor, monkeypatch, scratch_root):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            os.makedirs(cmd[-1])
            with open(os.path.join(cmd[-1], "Dockerfile"), "wb") as f:
                f.write(b"FROM fedora\n")
            return subprocess.CompletedProcess(cmd, 0, b"", b"")

        monkeypatch.setattr(subprocess, "run", fake_run)
        fetcher = CloneFetcher(scratch_root=scratch_root)

        result = fetcher.fetch(make_descriptor(git_url="git://github.com/a/b.git", git_path="/"), "Dockerfile")

        assert result.content == b"FROM fedora\n"
        cmd = calls[0]
        assert cmd[:2] == ["git", "clone"]
        assert "--single-branch" in cmd
        assert cmd[cmd.index("--depth") + 1] == "1"
        assert cmd[cmd.index("--branch") + 1] == "master"
        assert cmd[-2] == "https://github.com/a/b"

    def test_git_failure_is_clone_failed(self, make_descriptor, monkeypatch, scratch_root):
        def fake_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(128, cmd, b"", b"fatal: repository not found")

        monkeypatch.setattr(subprocess, "run", fake_run)

        result = CloneFetcher(scratch_root=scratch_root).fetch(make_descriptor(), "Dockerfile")

        assert isinstance(result.error, CloneFailed)
        assert "repository not found" in str(result.error)


class TestScratchCloneContainment:
    @staticmethod
    def _clone(tmp_path, make_descriptor):
        repo = tmp_path / "repo"
        (repo / "3.6").mkdir(parents=True)
        (repo / "3.6" / "Dockerfile").write_bytes(b"FROM python\n")
        (tmp_path / "host_secret").write_bytes(b"TOP-SECRET\n")
        return repo, ScratchClone(make_descriptor(git_path="/"), str(repo))

    def test_symlinked_file_is_not_read(self, tmp_path, make_descriptor):
        repo, clone = self._clone(tmp_path, make_descriptor)
        os.symlink(tmp_path / "host_secret", repo / "Dockerfile")

        result = clone.fetch("Dockerfile")

        assert isinstance(result.error, FileNotFound)
        assert result.content is None

    def test_symlink_within_clone_is_not_read(self, tmp_path, make_descriptor):
        repo, clone = self._clone(tmp_path, make_descriptor)
        os.symlink(repo / "3.6" / "Dockerfile", repo / "Dockerfile")

        assert isinstance(clone.fetch("Dockerfile").error, FileNotFound)

    def test_symlinked_directory_outside_clone(self, tmp_path, make_descriptor):
        repo, clone = self._clone(tmp_path, make_descriptor)
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "Dockerfile").write_bytes(b"FROM host\n")
        os.symlink(outside, repo / "ext")

        assert isinstance(clone.fetch("Dockerfile", "/ext/").error, FileNotFound)

    @pytest.mark.parametrize(
        "file_name,path",
        [
            ("../host_secret", "/"),
            ("host_secret", "/../"),
            ("host_secret", "/3.6/../../"),
        ],
    )
    def test_parent_segments_cannot_leave_clone(self, tmp_path, make_descriptor, file_name, path):
        _, clone = self._clone(tmp_path, make_descriptor)

        result = clone.fetch(file_name, path)

        assert isinstance(result.error, FileNotFound)
        assert result.content is None

    def test_parent_segments_inside_clone_are_allowed(self, tmp_path, make_descriptor):
        _, clone = self._clone(tmp_path, make_descriptor)

        result = clone.fetch("Dockerfile", "/3.6/../3.6/")

        assert result.content == b"FROM python\n"


class TestFetchReadme:
    def test_primary_location(self):
        calls = []

        def fetch(name, path):
            calls.append(path)
            return FetchResult.success(b"primary", f"{path}/{name}")

        assert fetch_readme(fetch, "/3.6/").content == b"primary"
        assert calls == ["/3.6/"]

    def test_falls_back_to_root(self):
        def fetch(name, path):
            if path == "/":
                return FetchResult.success(b"root readme", name)
            return FetchResult.failure(FileNotFound(f"{path}/{name}"))

        result = fetch_readme(fetch, "/3.6/")

        assert result.ok
        assert result.content == b"root readme"
        assert result.source == "README.md"

    def test_both_fail(self):
        def fetch(name, path):
            return FetchResult.failure(FileNotFound(name))

        assert not fetch_readme(fetch, "/3.6/").ok

    def test_no_second_attempt_at_root(self):
        calls = []

        def fetch(name, path):
            calls.append(path)
            return FetchResult.failure(FileNotFound(name))

        fetch_readme(fetch, "/")
        assert calls == ["/"]
