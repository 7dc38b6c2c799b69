"""
Flask application and read-back endpoints.

Serves the content of the artifact cache as JSON for the presentation layer.
Tag details are read from the cache slots populated by the sync coordinator;
the image and tag lists (and the source repository of a tag) come from the
build API.
"""

import logging
import os

from flask import Flask, abort, jsonify

from .api import BuildApiClient
from .config import config
from .errors import ApiError
from .installer import README_NAME
from .locator import slot_path
from .models import ProjectDescriptor
from .staleness import WATERMARK_FILE, read_watermark
from .validation import parse_repo_path, validate_tag

logger = logging.getLogger(__name__)

# Create Flask app
app = Flask(__name__)


def _read_text(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read()
    except FileNotFoundError:
        return None


def _build_definition(slot: str) -> tuple[str, str | None]:
    """Find the installed build definition: the slot file besides README and watermark."""
    for name in sorted(os.listdir(slot)):
        if name in (README_NAME, WATERMARK_FILE) or name.startswith("."):
            continue
        path = os.path.join(slot, name)
        if os.path.isfile(path):
            return name, _read_text(path)
    return "", None


def _api_client() -> BuildApiClient | None:
    if not config.BUILD_API_URL:
        return None
    return BuildApiClient(config.BUILD_API_URL, config.BUILD_API_NAMESPACE, timeout=config.HTTP_TIMEOUT)


def _require_api_client() -> BuildApiClient:
    api = _api_client()
    if api is None:
        logger.error("BUILD_API_URL is not set, cannot list images")
        abort(503, "Build API is not configured")
    return api


def _source_repo(descriptor: ProjectDescriptor) -> str | None:
    api = _api_client()
    if api is None:
        return None
    try:
        return api.target_file(descriptor)["source_repo"] or None
    except ApiError as e:
        logger.warning(f"No source repository for {descriptor}: {e}")
        return None


# -------------------------------
# Endpoints
# -------------------------------


@app.route("/health")
def health():
    """Liveness check."""
    return jsonify({"status": "ok"})


@app.route("/containers/")
def image_list():
    """
    Images known to the build system.

    Returns:
        JSON:
        {
            "registry_domain": str,
            "images": [{"name": str, "app_id": str, "job_id": str, "uri": str}]
        }

    Raises:
        502: Build API unreachable or returned garbage
        503: Build API not configured
    """
    api = _require_api_client()
    try:
        projects = api.projects()
    except ApiError as e:
        logger.error(f"Could not retrieve image list: {e}")
        abort(502, "Could not retrieve image list")

    images = []
    for project in projects:
        job_id = str(project.get("job_id") or "")
        if not job_id:
            continue
        descriptor = ProjectDescriptor(app_id=str(project.get("app_id") or ""), job_id=job_id, desired_tag="", git_url="")
        images.append({
            "name": descriptor.image_name,
            "app_id": descriptor.effective_app_id,
            "job_id": job_id,
            "uri": f"{config.REGISTRY_DOMAIN}/{descriptor.image_name}",
        })

    logger.info(f"Listing {len(images)} images")
    return jsonify({"registry_domain": config.REGISTRY_DOMAIN, "images": images})


@app.route("/containers/<path:repo_path>/tags")
def tag_list(repo_path):
    """
    Tags of one image with their build status.

    Returns:
        JSON:
        {
            "image": str,
            "registry_domain": str,
            "latest": "latest",
            "tags": [{"tag": str, "build_status": str, "pull": str}]
        }

    Raises:
        400: Invalid image path
        404: The build system reports no tags
        502: Build API unreachable or returned garbage
        503: Build API not configured
    """
    parsed = parse_repo_path(repo_path)
    descriptor = ProjectDescriptor(app_id=parsed["app_id"], job_id=parsed["job_id"], desired_tag="", git_url="")
    api = _require_api_client()
    try:
        tags = api.desired_tags(descriptor.effective_app_id, descriptor.job_id)
    except ApiError as e:
        logger.error(f"Could not retrieve tag list of {descriptor.image_name}: {e}")
        abort(502, "Could not retrieve tag list")

    entries = []
    for tag in tags:
        name = str(tag.get("desired_tag") or "")
        if not name:
            continue
        entries.append({
            "tag": name,
            "build_status": str(tag.get("build_status") or ""),
            "pull": f"{config.REGISTRY_DOMAIN}/{descriptor.image_name}:{name}",
        })
    if not entries:
        abort(404, "No tags found")

    return jsonify({
        "image": descriptor.image_name,
        "registry_domain": config.REGISTRY_DOMAIN,
        "latest": "latest",
        "tags": entries,
    })


@app.route("/containers/<path:repo_path>/tags/<tag>")
def tag_details(repo_path, tag):
    """
    Cached build artifacts of one tag.

    Args:
        repo_path: "<job>" for library images or "<app>/<job>"
        tag: Desired tag

    Returns:
        JSON:
        {
            "image": str,             # pull name without registry domain
            "pull": str,              # full pull reference
            "tag": str,
            "build_number": str,
            "build_definition_name": str,
            "build_definition": str,  # file content or fallback placeholder
            "readme": str | null,
            "source_repo": str | null # from the build API, null if unavailable
        }

    Raises:
        400: Invalid image path or tag
        404: Slot has never been populated
    """
    parsed = parse_repo_path(repo_path)
    validate_tag(tag)

    descriptor = ProjectDescriptor(app_id=parsed["app_id"], job_id=parsed["job_id"], desired_tag=tag, git_url="")
    slot = slot_path(config.CACHE_DIR, descriptor)
    logger.info(f"Tag details requested: image='{descriptor.image_name}', tag='{tag}'")

    build_number = read_watermark(slot) if os.path.isdir(slot) else None
    if build_number is None:
        logger.warning(f"No cached artifacts for {descriptor}")
        abort(404, f"No cached build artifacts for {descriptor}")

    name, content = _build_definition(slot)
    return jsonify({
        "image": descriptor.image_name,
        "pull": f"{config.REGISTRY_DOMAIN}/{descriptor.image_name}:{tag}",
        "tag": tag,
        "build_number": build_number,
        "build_definition_name": name,
        "build_definition": content or "",
        "readme": _read_text(os.path.join(slot, README_NAME)),
        "source_repo": _source_repo(descriptor),
    })
