"""
Container registry browser with a local cache of upstream build artifacts.

Each (app_id, job_id, tag) of the registry gets a cache slot holding the
tag's Dockerfile, the project's README and the build number the content was
fetched for. Slots are refreshed concurrently from shallow clones whenever
the build system reports a new build number.

Components:
    - locator: source URL normalization, raw URLs, cache/scratch paths
    - fetcher: raw-URL and shallow-clone fetch strategies
    - staleness: BuildNumber watermark checks
    - installer: link-or-copy installs with placeholder fallback
    - sync: concurrent fan-out over a batch of projects
"""

__version__ = "0.2.0"

# Import key components for convenience
from .config import Config
from .errors import (
    ApiError,
    CloneFailed,
    FetchFailed,
    FileNotFound,
    InstallFailed,
    RegbrowseError,
    ScratchCleanupFailed,
    SyncError,
    UnsupportedHost,
)
from .fetcher import CloneFetcher, RawFileFetcher, fetch_readme
from .installer import install, install_file
from .locator import build_raw_url, normalize_git_url, slot_path
from .models import FetchResult, IndexEntry, ProjectDescriptor, SlotResult, SyncContext
from .staleness import is_stale, record_watermark
from .sync import build_index, sync_batch, sync_slot

__all__ = [
    "Config",
    "ApiError",
    "CloneFailed",
    "FetchFailed",
    "FileNotFound",
    "InstallFailed",
    "RegbrowseError",
    "ScratchCleanupFailed",
    "SyncError",
    "UnsupportedHost",
    "CloneFetcher",
    "RawFileFetcher",
    "fetch_readme",
    "install",
    "install_file",
    "build_raw_url",
    "normalize_git_url",
    "slot_path",
    "FetchResult",
    "IndexEntry",
    "ProjectDescriptor",
    "SlotResult",
    "SyncContext",
    "is_stale",
    "record_watermark",
    "build_index",
    "sync_batch",
    "sync_slot",
]
