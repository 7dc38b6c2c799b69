"""
Remote content fetcher module for the registry browser.

Retrieves single files from a project's upstream repository using one of two
strategies:

    1. Raw-URL (index build): HTTP GET against the host's raw-content URL.
    2. Clone (per-tag sync): single-branch shallow clone into a scratch
       directory, then plain file reads. The scratch directory is removed
       on every exit path.

Neither strategy raises for remote failures; the error is carried in the
returned FetchResult.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager

import requests

from .errors import (
    CloneFailed,
    FetchFailed,
    FileNotFound,
    RegbrowseError,
    ScratchCleanupFailed,
)
from .locator import build_raw_url, normalize_git_url, repo_relative, scratch_path
from .models import FetchResult, ProjectDescriptor

logger = logging.getLogger(__name__)

README = "README.md"


class RawFileFetcher:
    """
    Raw-URL strategy: one HTTP GET per file.

    A requests session is shared across threads for connection pooling; only
    GET is issued on it.
    """

    def __init__(self, timeout: int = 30, session: requests.Session | None = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, descriptor: ProjectDescriptor, file_name: str, path: str | None = None) -> FetchResult:
        """
        Fetch a file over HTTP.

        Args:
            descriptor: Project whose repository is read
            file_name: File to fetch
            path: Directory inside the repository (defaults to descriptor.git_path)

        Returns:
            FetchResult with the response body, or an UnsupportedHost /
            FetchFailed error.
        """
        if path is None:
            path = descriptor.git_path
        try:
            url = build_raw_url(descriptor.git_url, descriptor.git_branch, path, file_name)
        except RegbrowseError as e:
            return FetchResult.failure(e, descriptor.git_url)

        logger.debug(f"Fetching file: '{url}'")
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            return FetchResult.failure(FetchFailed(url, str(e)), url)

        if resp.status_code != 200:
            return FetchResult.failure(FetchFailed(url, f"HTTP {resp.status_code}"), url)
        return FetchResult.success(resp.content, url)


class ScratchClone:
    """
    A shallow checkout of one project, scoped to one sync operation.

    Created by CloneFetcher.checkout(). When the clone itself failed, every
    fetch() returns the clone error without touching the filesystem.
    """

    def __init__(self, descriptor: ProjectDescriptor, root: str, error: Exception | None = None):
        self.descriptor = descriptor
        self.root = root
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def _contains(self, full_path: str) -> bool:
        """True if full_path is a regular entry inside the clone (no symlink, no escape via '..')."""
        if os.path.islink(full_path):
            logger.warning(f"Refusing to read symlink {full_path} from clone of {self.descriptor}")
            return False
        root = os.path.realpath(self.root)
        resolved = os.path.realpath(full_path)
        if os.path.commonpath([root, resolved]) != root:
            logger.warning(f"Refusing to read {full_path} outside the clone of {self.descriptor}")
            return False
        return True

    def fetch(self, file_name: str, path: str | None = None) -> FetchResult:
        if self.error is not None:
            return FetchResult.failure(self.error, self.descriptor.git_url)

        if path is None:
            path = self.descriptor.git_path
        relative = repo_relative(path, file_name)
        full_path = os.path.join(self.root, relative)
        if not self._contains(full_path) or not os.path.isfile(full_path):
            return FetchResult.failure(FileNotFound(relative), relative)

        with open(full_path, "rb") as f:
            content = f.read()
        logger.debug(f"Read {relative} ({len(content)} bytes) from clone of {self.descriptor}")
        return FetchResult.success(content, relative)


class CloneFetcher:
    """
    Clone strategy: single-branch shallow clone, then file reads.

    Scratch directories live under scratch_root and are derived from the full
    (app, job, tag) key, so concurrent clones of different keys never collide.
    """

    def __init__(self, scratch_root: str | None = None, timeout: int = 300):
        self.scratch_root = scratch_root
        self.timeout = timeout

    def clone(self, url: str, branch: str, dest: str) -> None:
        """
        Shallow clone refs/heads/{branch} of url into dest.

        Raises:
            CloneFailed: If git exits non-zero, times out or cannot be run
        """
        clone_cmd = [
            "git",
            "clone",
            "--quiet",
            "--depth",
            "1",
            "--single-branch",
            "--branch",
            branch,
            url,
            dest,
        ]
        logger.debug(f"Running command: {' '.join(clone_cmd)}")

        try:
            subprocess.run(
                clone_cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except subprocess.TimeoutExpired:
            raise CloneFailed(url, branch, f"timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            raise CloneFailed(url, branch, e.stderr.decode(errors="replace").strip())
        except OSError as e:
            raise CloneFailed(url, branch, str(e))

    @contextmanager
    def checkout(self, descriptor: ProjectDescriptor, scratch_root: str | None = None):
        """
        Clone a project into its scratch directory for the duration of a with-block.

        Yields:
            ScratchClone; on clone failure its error is a CloneFailed and no
            file is read.

        The scratch directory is removed on exit whether the block succeeded
        or raised. A failed removal is logged, never raised.
        """
        root = scratch_root or self.scratch_root
        owns_root = root is None
        if owns_root:
            root = tempfile.mkdtemp(prefix="regbrowse-")
        dest = scratch_path(root, descriptor)

        try:
            error = None
            try:
                if os.path.exists(dest):
                    shutil.rmtree(dest)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                self.clone(normalize_git_url(descriptor.git_url), descriptor.git_branch.strip("/"), dest)
                logger.info(f"Cloned {descriptor.git_url} ({descriptor.git_branch}) for {descriptor}")
            except CloneFailed as e:
                logger.warning(f"Clone failed for {descriptor}: {e}")
                error = e
            except OSError as e:
                error = CloneFailed(descriptor.git_url, descriptor.git_branch, str(e))
                logger.warning(f"Clone failed for {descriptor}: {error}")
            yield ScratchClone(descriptor, dest, error)
        finally:
            remove_scratch(root if owns_root else dest)

    def fetch(self, descriptor: ProjectDescriptor, file_name: str, path: str | None = None) -> FetchResult:
        """Clone, read a single file, and discard the clone."""
        with self.checkout(descriptor) as clone:
            return clone.fetch(file_name, path)


def remove_scratch(path: str) -> None:
    """Remove a scratch directory, logging ScratchCleanupFailed instead of raising."""
    if not os.path.exists(path):
        return
    try:
        shutil.rmtree(path)
        logger.debug(f"Removed scratch directory {path}")
    except OSError as e:
        logger.warning(str(ScratchCleanupFailed(f"Unable to remove {path}: {e}")))


def fetch_readme(fetch, git_path: str) -> FetchResult:
    """
    Fetch README.md next to the build definition, falling back to the repository root.

    Args:
        fetch: Callable (file_name, path) -> FetchResult
        git_path: Directory of the build definition inside the repository

    Returns:
        The first successful FetchResult, or the root attempt's failure
    """
    result = fetch(README, git_path)
    if result.ok:
        return result

    if not git_path.strip("/"):
        return result

    logger.info(f"README not found at '{git_path}' ({result.error}), trying the repository root")
    root_result = fetch(README, "/")
    if not root_result.ok:
        logger.warning(f"README not found at repository root either: {root_result.error}")
    return root_result
