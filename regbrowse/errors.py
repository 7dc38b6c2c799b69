"""
Error types raised and reported by the artifact cache.

Fetch errors are carried inside FetchResult values rather than raised, so a
single unreachable repository never aborts a batch. Only SyncError escapes
the coordinator.
"""


class RegbrowseError(Exception):
    """Base class for all registry browser errors."""


class UnsupportedHost(RegbrowseError):
    """Source URL is neither a GitHub nor a GitLab repository."""

    def __init__(self, url: str):
        super().__init__(f"Must be a github or gitlab link: {url}")
        self.url = url


class FetchFailed(RegbrowseError):
    """Raw-file HTTP retrieval failed (network error or non-200 status)."""

    def __init__(self, url: str, reason: str = ""):
        message = f"Unable to retrieve {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.url = url


class CloneFailed(RegbrowseError):
    """Shallow clone of a source repository failed."""

    def __init__(self, url: str, branch: str, reason: str = ""):
        message = f"Unable to clone {url} (branch {branch})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.url = url
        self.branch = branch


class FileNotFound(RegbrowseError):
    """Requested file is absent from the cloned repository."""

    def __init__(self, path: str):
        super().__init__(f"File not found in repository: {path}")
        self.path = path


class InstallFailed(RegbrowseError):
    """Filesystem error while installing a file into a cache slot."""


class ScratchCleanupFailed(RegbrowseError):
    """A scratch clone directory could not be removed."""


class SyncError(RegbrowseError):
    """A sync batch could not be started."""


class ApiError(RegbrowseError):
    """The build-tracking API could not be queried or returned bad data."""
