"""
Source locator module for the registry browser.

Normalizes source repository URLs, builds raw-content URLs for the supported
git hosts, and derives the on-disk paths of cache slots and scratch clones.
"""

import logging
import os
from urllib.parse import urlsplit, urlunsplit

from .errors import UnsupportedHost
from .models import ProjectDescriptor

logger = logging.getLogger(__name__)

GITHUB_MARKER = "github"
GITLAB_MARKER = "gitlab"
GITHUB_RAW_HOST = "raw.githubusercontent.com"


def normalize_git_url(url: str) -> str:
    """
    Normalize a source repository URL.

    Rewrites git:// and http:// to https://, then strips trailing slashes and
    a trailing ".git" suffix (users write all of these variants in the index).

    Examples:
        >>> normalize_git_url("git://github.com/CentOS/container-index.git/")
        'https://github.com/CentOS/container-index'
        >>> normalize_git_url("http://gitlab.com/group/project")
        'https://gitlab.com/group/project'
    """
    url = url.strip()
    for scheme in ("git://", "http://"):
        if url.startswith(scheme):
            url = "https://" + url[len(scheme):]
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")


def build_raw_url(git_url: str, git_branch: str, path: str, file_name: str) -> str:
    """
    Build the raw-content URL of a single file in a GitHub or GitLab repository.

    Args:
        git_url: Repository URL as written in the index
        git_branch: Branch to read from
        path: Directory of the file inside the repository ("/" for the root)
        file_name: Name of the file to fetch

    Returns:
        Raw-content URL:
            GitHub: https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{path}/{file}
            GitLab: {url}/raw/{branch}/{path}/{file}

    Raises:
        UnsupportedHost: If the URL host is neither GitHub nor GitLab
    """
    url = normalize_git_url(git_url)
    parts = urlsplit(url if "://" in url else f"https://{url}")
    host = (parts.hostname or "").lower()
    segments = [
        git_branch.strip("/"),
        path.strip("/"),
        file_name.lstrip("/"),
    ]
    tail = "/".join(s for s in segments if s)

    if host == "github.com" or host.endswith(".github.com"):
        raw_url = urlunsplit((parts.scheme, GITHUB_RAW_HOST, f"{parts.path}/{tail}", "", ""))
    elif GITHUB_MARKER in host:
        raw_url = f"{url}/{tail}"
    elif GITLAB_MARKER in host:
        raw_url = f"{url}/raw/{tail}"
    else:
        raise UnsupportedHost(git_url)

    logger.debug(f"Raw URL for {file_name}: {raw_url}")
    return raw_url


def slot_path(cache_root: str, descriptor: ProjectDescriptor) -> str:
    """
    Directory of the cache slot for a descriptor.

    Layout:
        {root}/{app_id}/{job_id}/{tag}   regular images
        {root}/{job_id}/{tag}            library images
    """
    if descriptor.is_library:
        return os.path.join(cache_root, descriptor.job_id, descriptor.desired_tag)
    return os.path.join(cache_root, descriptor.app_id, descriptor.job_id, descriptor.desired_tag)


def scratch_path(scratch_root: str, descriptor: ProjectDescriptor) -> str:
    """Scratch clone directory for a descriptor, always derived from the full key."""
    return os.path.join(scratch_root, *descriptor.key)


def repo_relative(path: str, file_name: str) -> str:
    """Join a repository directory and file name into a clone-relative path."""
    parts = [p for p in (path.strip("/"), file_name.strip("/")) if p]
    return "/".join(parts)


def split_file_link(link: str, git_branch: str) -> tuple[str, str] | None:
    """
    Split a link to a file in a repository into (git_path, file_name).

    The part of the link after the branch is taken as the repository-relative
    path, which covers GitHub and GitLab blob/raw links:

        https://github.com/{owner}/{repo}/blob/{branch}/{path}/{file}
        https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{path}/{file}
        https://gitlab.com/{group}/{project}/-/raw/{branch}/{path}/{file}

    Returns:
        ("/{path}/", file) or None if the branch does not occur in the link

    Examples:
        >>> split_file_link("https://github.com/a/b/blob/master/3.6/Dockerfile", "master")
        ('/3.6/', 'Dockerfile')
    """
    segments = [s for s in urlsplit(link.strip()).path.split("/") if s]
    branch = [s for s in git_branch.strip("/").split("/") if s]
    if not branch:
        return None

    # skip owner/repo so a repository named like the branch is not mistaken for it
    for i in range(2, len(segments) - len(branch)):
        if segments[i:i + len(branch)] == branch:
            rest = segments[i + len(branch):]
            return "/" + "".join(f"{s}/" for s in rest[:-1]), rest[-1]
    return None
