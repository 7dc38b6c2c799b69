"""
Index description parser.

The container index is a git repository with an index.d directory of YAML
files, one per namespace:

    Projects:
      - id: 1
        app-id: bamachrn
        job-id: python
        git-url: https://github.com/bamachrn/container-python
        git-branch: master
        git-path: /3.6/
        target-file: Dockerfile
        desired-tag: "3.6"
        build-context: ./
        depends-on: centos/centos:7      # string or list
        notify-email: someone@example.com

Files whose name contains "index_template" are skipped.
"""

import logging
import os
import tempfile

import yaml

from .errors import RegbrowseError
from .fetcher import CloneFetcher, remove_scratch
from .models import ProjectDescriptor

logger = logging.getLogger(__name__)

INDEX_FOLDER = "index.d"
INDEX_TEMPLATE = "index_template"


def _string_list(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v is not None)
    return (str(value),)


def _project(entry: dict) -> ProjectDescriptor:
    app_id = entry.get("app-id") or ""
    if str(app_id).lower() == "library":
        app_id = ""
    return ProjectDescriptor(
        app_id=str(app_id),
        job_id=str(entry["job-id"]),
        desired_tag=str(entry.get("desired-tag") or "latest"),
        git_url=str(entry["git-url"]),
        git_branch=str(entry.get("git-branch") or "master"),
        git_path=str(entry.get("git-path") or "/"),
        target_file=str(entry.get("target-file") or "Dockerfile"),
        build_context=str(entry.get("build-context") or "./"),
        depends_on=_string_list(entry.get("depends-on")),
        notify_email=str(entry.get("notify-email") or ""),
        prebuild_script=str(entry.get("prebuild-script") or ""),
        prebuild_context=str(entry.get("prebuild-context") or ""),
        prebuild_requested=bool(entry.get("prebuild-script")),
        index_id=entry.get("id"),
    )


def parse_index_file(path: str) -> list[ProjectDescriptor]:
    """
    Parse one index.d YAML file.

    Raises:
        RegbrowseError: If the file is not valid YAML or a project lacks
            job-id or git-url
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RegbrowseError(f"Invalid YAML in {path}: {e}") from e

    projects = data.get("Projects") or []
    descriptors = []
    for entry in projects:
        try:
            descriptors.append(_project(entry))
        except (KeyError, TypeError, AttributeError) as e:
            raise RegbrowseError(f"Invalid project entry in {path}: {e!r}") from e

    logger.debug(f"Parsed {len(descriptors)} projects from {path}")
    return descriptors


def load_index(index_dir: str) -> list[ProjectDescriptor]:
    """Parse every index file in index_dir (sorted by name), skipping templates."""
    descriptors = []
    for name in sorted(os.listdir(index_dir)):
        if INDEX_TEMPLATE in name:
            continue
        path = os.path.join(index_dir, name)
        if not os.path.isfile(path) or not name.endswith((".yml", ".yaml")):
            continue
        descriptors.extend(parse_index_file(path))

    logger.info(f"Loaded {len(descriptors)} projects from {index_dir}")
    return descriptors


def retrieve_index(repo_url: str, branch: str = "master", fetcher: CloneFetcher | None = None) -> list[ProjectDescriptor]:
    """
    Clone the container index repository and parse its index.d directory.

    The clone lives in a private directory under the fetcher's scratch root,
    removed as a whole afterwards.

    Raises:
        RegbrowseError: If the clone fails or the index is invalid
    """
    fetcher = fetcher or CloneFetcher()
    index_repo = ProjectDescriptor(app_id="index", job_id="container-index", desired_tag=branch, git_url=repo_url, git_branch=branch)
    try:
        scratch_root = tempfile.mkdtemp(prefix="regbrowse-index-", dir=fetcher.scratch_root)
    except OSError as e:
        raise RegbrowseError(f"Unable to create scratch directory for the index: {e}") from e

    try:
        with fetcher.checkout(index_repo, scratch_root) as clone:
            if not clone.ok:
                raise clone.error
            return load_index(os.path.join(clone.root, INDEX_FOLDER))
    finally:
        remove_scratch(scratch_root)
