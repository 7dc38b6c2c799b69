"""
Data model for the artifact cache.

Defines project descriptors read from the index, transient fetch results,
and the explicit context handed to the sync coordinator.
"""

from dataclasses import dataclass, field
from typing import Any

LIBRARY_ALIAS = "library"


@dataclass(frozen=True)
class ProjectDescriptor:
    """
    One buildable unit: an (app_id, job_id, desired_tag) triple plus its source.

    The build number is an opaque token reported by the build system. It is
    never compared for ordering, only for equality.

    Library images have an empty app_id (or the "library" alias) and use a
    shortened cache path without the app segment.
    """

    app_id: str
    job_id: str
    desired_tag: str
    git_url: str
    git_branch: str = "master"
    git_path: str = "/"
    target_file: str = "Dockerfile"
    prebuild_requested: bool = False
    build_number: str | None = None

    # Index-only fields
    build_context: str = "./"
    depends_on: tuple[str, ...] = ()
    notify_email: str = ""
    prebuild_script: str = ""
    prebuild_context: str = ""
    index_id: int | None = None

    @property
    def effective_app_id(self) -> str:
        return self.app_id or LIBRARY_ALIAS

    @property
    def is_library(self) -> bool:
        return self.effective_app_id.lower() == LIBRARY_ALIAS

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.effective_app_id, self.job_id, self.desired_tag)

    @property
    def image_name(self) -> str:
        """Registry image name: "job" for library images, "app/job" otherwise."""
        if self.is_library:
            return self.job_id
        return f"{self.app_id}/{self.job_id}"

    @property
    def build_definition_name(self) -> str:
        """File name the build definition is cached under (basename of target_file)."""
        return self.target_file.strip("/").rsplit("/", 1)[-1] or "Dockerfile"

    def __str__(self):
        return f"{self.image_name}:{self.desired_tag}"


@dataclass
class FetchResult:
    """
    Outcome of fetching one remote file.

    Attributes:
        ok: True if content was retrieved
        content: File bytes, or None on failure
        error: Exception describing the failure, or None on success
        source: URL or repository-relative path actually used
    """

    ok: bool
    content: bytes | None = None
    error: Exception | None = None
    source: str = ""

    @classmethod
    def success(cls, content: bytes, source: str) -> "FetchResult":
        return cls(ok=True, content=content, source=source)

    @classmethod
    def failure(cls, error: Exception, source: str = "") -> "FetchResult":
        return cls(ok=False, error=error, source=source)

    def text(self) -> str:
        """Content decoded as UTF-8 (replacement on bad bytes), or "" on failure."""
        if self.content is None:
            return ""
        return self.content.decode("utf-8", errors="replace")


@dataclass
class SlotResult:
    """Per-item outcome of a cache sync."""

    key: tuple[str, str, str]
    slot: str
    stale: bool = False
    refreshed: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


@dataclass
class IndexEntry:
    """Index-build output for one project: descriptor plus fetched text."""

    descriptor: ProjectDescriptor
    build_definition: str = ""
    readme: str = ""
    warnings: list[str] = field(default_factory=list)


@dataclass
class SyncContext:
    """
    Explicit context for one sync call.

    Attributes:
        cache_root: Root directory of the cache slots
        fetcher: Clone-strategy fetcher used by the per-tag sync
        raw_fetcher: Raw-URL fetcher used by the index build
        scratch_root: Parent directory for the per-batch scratch namespace
            (system temp dir when None)
    """

    cache_root: str
    fetcher: Any = None
    raw_fetcher: Any = None
    scratch_root: str | None = None
