"""Tests for the sync pass wired up by the entry point."""

import dataclasses
import logging
import os

import app
from regbrowse.config import Config
from regbrowse.errors import ApiError, FetchFailed
from regbrowse.locator import repo_relative
from regbrowse.models import FetchResult

PYTHON = "https://github.com/bamachrn/container-python"


class FakeApi:
    def __init__(self, *args, **kwargs):
        pass

    def describe(self, descriptor):
        if descriptor.job_id == "unknown":
            raise ApiError("404")
        return dataclasses.replace(descriptor, build_number="5")


class FakeRawFetcher:
    fetched = []

    def __init__(self, timeout=30):
        self.timeout = timeout

    def fetch(self, descriptor, file_name, path=None):
        relative = repo_relative(descriptor.git_path if path is None else path, file_name)
        self.fetched.append((descriptor.job_id, relative))
        return FetchResult.failure(FetchFailed(relative, "HTTP 404"))


def test_run_sync(tmp_path, monkeypatch, caplog, make_descriptor, fake_fetcher):
    cfg = Config()
    cfg.CACHE_DIR = str(tmp_path / "cache")
    cfg.SCRATCH_DIR = None
    cfg.HTTP_TIMEOUT = 7
    fetcher = fake_fetcher({PYTHON: {"3.6/Dockerfile": b"FROM python\n"}})
    projects = [make_descriptor(build_number=None), make_descriptor(job_id="unknown", build_number=None)]

    monkeypatch.setattr(app, "CloneFetcher", lambda **kwargs: fetcher)
    monkeypatch.setattr(app, "retrieve_index", lambda url, branch, f: projects)
    monkeypatch.setattr(app, "BuildApiClient", FakeApi)
    monkeypatch.setattr(app, "RawFileFetcher", FakeRawFetcher)
    monkeypatch.setattr(FakeRawFetcher, "fetched", [])

    with caplog.at_level(logging.INFO, logger="app"):
        [result] = app.run_sync(cfg)

    assert result.refreshed
    with open(os.path.join(cfg.CACHE_DIR, "bamachrn", "python", "3.6", "BuildNumber"), encoding="utf-8") as f:
        assert f.read() == "5"

    # the raw index build covers described projects only
    assert ("python", "3.6/Dockerfile") in FakeRawFetcher.fetched
    assert all(job_id == "python" for job_id, _ in FakeRawFetcher.fetched)
    assert "1 without a reachable build definition" in caplog.text
