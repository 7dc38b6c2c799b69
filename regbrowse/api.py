"""
Build-tracking API client.

Reads per-tag build metadata from the build service:

    {api}/v1/namespaces/{ns}/app-ids/{app}/job-ids/{job}/desired-tags/{tag}/target-file
        {"prebuild": bool, "target_file_link": str, "source_repo": str}
    {api}/v1/namespaces/{ns}/app-ids/{app}/job-ids/{job}/desired-tags/{tag}/builds/lastBuild/logs
        {"logs": {"BuildNumber": str, ...}}
    {api}/v1/namespaces/{ns}/projects
        {"projects": [{"app_id": str, "job_id": str, ...}]}
    {api}/v1/namespaces/{ns}/app-ids/{app}/job-ids/{job}/desired-tags
        {"tags": [{"desired_tag": str, "build_status": str, ...}]}
"""

import dataclasses
import logging
from urllib.parse import urlsplit

import requests

from .errors import ApiError
from .locator import GITHUB_RAW_HOST, split_file_link
from .models import LIBRARY_ALIAS, ProjectDescriptor

logger = logging.getLogger(__name__)


class BuildApiClient:
    def __init__(self, base_url: str, namespace: str, timeout: int = 30, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.namespace = namespace
        self.timeout = timeout
        self.session = session or requests.Session()

    def _tag_path(self, descriptor: ProjectDescriptor) -> str:
        app_id, job_id, tag = descriptor.key
        return f"app-ids/{app_id}/job-ids/{job_id}/desired-tags/{tag}"

    def get(self, uri: str) -> dict:
        """GET a namespace-relative API path and decode the JSON body."""
        url = f"{self.base_url}/v1/namespaces/{self.namespace}/{uri}"
        logger.debug(f"Fetching API data: {url}")
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ApiError(f"Could not fetch details from API {uri}: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Could not decode API data for {uri}: {e}") from e

    def target_file(self, descriptor: ProjectDescriptor) -> dict:
        data = self.get(f"{self._tag_path(descriptor)}/target-file")
        return {
            "prebuild": bool(data.get("prebuild", False)),
            "target_file_link": data.get("target_file_link") or "",
            "source_repo": data.get("source_repo") or "",
        }

    def last_build_number(self, descriptor: ProjectDescriptor) -> str:
        data = self.get(f"{self._tag_path(descriptor)}/builds/lastBuild/logs")
        try:
            build_number = data["logs"]["BuildNumber"]
        except (KeyError, TypeError) as e:
            raise ApiError(f"No build number reported for {descriptor}") from e
        return str(build_number)

    def describe(self, descriptor: ProjectDescriptor) -> ProjectDescriptor:
        """
        Return a copy of descriptor completed with build-system data.

        Always sets the build number and pre-build flag. When the build system
        reports a source repository or a link to the target file, those
        replace git_url and git_path/target_file from the index.
        """
        target = self.target_file(descriptor)
        overrides = {
            "build_number": self.last_build_number(descriptor),
            "prebuild_requested": target["prebuild"],
        }

        source_repo = target["source_repo"].strip()
        if source_repo and urlsplit(source_repo).hostname != GITHUB_RAW_HOST:
            overrides["git_url"] = source_repo

        located = split_file_link(target["target_file_link"], descriptor.git_branch)
        if located:
            overrides["git_path"], overrides["target_file"] = located
        elif target["target_file_link"]:
            logger.warning(f"Cannot locate {target['target_file_link']} on branch {descriptor.git_branch} for {descriptor}")

        return dataclasses.replace(descriptor, **overrides)

    def projects(self) -> list[dict]:
        """Projects known to the build system: [{"app_id": str, "job_id": str, ...}]."""
        data = self.get("projects")
        projects = data.get("projects") if isinstance(data, dict) else None
        if projects is None:
            return []
        if not isinstance(projects, list):
            raise ApiError("Could not decode project list")
        return [p for p in projects if isinstance(p, dict)]

    def desired_tags(self, app_id: str, job_id: str) -> list[dict]:
        """Tags of one image: [{"desired_tag": str, "build_status": str, ...}]."""
        data = self.get(f"app-ids/{app_id or LIBRARY_ALIAS}/job-ids/{job_id}/desired-tags")
        tags = data.get("tags") if isinstance(data, dict) else None
        if tags is None:
            return []
        if not isinstance(tags, list):
            raise ApiError(f"Could not decode tag list of {app_id}/{job_id}")
        return [t for t in tags if isinstance(t, dict)]
