"""
Input validation module for the registry browser.

Provides validation for app ids, job ids and tags. These values become path
segments of the cache, so the same rules guard both the HTTP surface and the
sync coordinator.
"""

import logging
import re

from flask import abort

from .config import config
from .models import LIBRARY_ALIAS

logger = logging.getLogger(__name__)

COMPONENT_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")
TAG_RE = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9._-]*$")


def is_valid_component(name: str) -> bool:
    """
    Check an app id or job id.

    Rules:
        - 1-{MAX_NAME_LENGTH} characters
        - Alphanumeric characters, dots, hyphens and underscores
        - Must start with an alphanumeric character (rules out "." and "..")
    """
    return bool(name) and len(name) <= config.MAX_NAME_LENGTH and COMPONENT_RE.match(name) is not None


def is_valid_tag(tag: str) -> bool:
    """
    Check a tag.

    Rules:
        - 1-{MAX_TAG_LENGTH} characters
        - Alphanumeric characters, dots, hyphens and underscores
        - Must not start with a dot or hyphen
    """
    return bool(tag) and len(tag) <= config.MAX_TAG_LENGTH and TAG_RE.match(tag) is not None


def validate_name_component(name: str) -> None:
    """
    Validate an app id or job id from a request.

    Raises:
        HTTPException: 400 Bad Request if name is invalid
    """
    if not is_valid_component(name):
        logger.warning(f"Invalid name component: {name!r}")
        abort(400, f"Invalid name: must be 1-{config.MAX_NAME_LENGTH} characters of alphanumerics, dots, hyphens and underscores")

    logger.debug(f"Name validated: {name}")


def validate_tag(tag: str) -> None:
    """
    Validate container image tag from a request.

    Raises:
        HTTPException: 400 Bad Request if tag is invalid
    """
    if not is_valid_tag(tag):
        logger.warning(f"Invalid tag: {tag!r}")
        abort(400, f"Invalid tag: must be 1-{config.MAX_TAG_LENGTH} characters of alphanumerics, dots, hyphens and underscores")

    logger.debug(f"Tag validated: {tag}")


def parse_repo_path(repo_path: str) -> dict:
    """
    Parse an image path from a URL into its components.

    Supports two formats:
    1. <job> - library image
    2. <app>/<job> - regular image

    Returns:
        {"app_id": str, "job_id": str}; app_id is "library" for library images

    Raises:
        HTTPException: 400 if the format is invalid

    Examples:
        >>> parse_repo_path("nginx")
        {'app_id': 'library', 'job_id': 'nginx'}
        >>> parse_repo_path("bamachrn/python")
        {'app_id': 'bamachrn', 'job_id': 'python'}
    """
    parts = repo_path.strip("/").split("/")
    if len(parts) == 1:
        app_id, job_id = LIBRARY_ALIAS, parts[0]
    elif len(parts) == 2:
        app_id, job_id = parts
    else:
        logger.warning(f"Invalid repository path: {repo_path}")
        abort(400, "Invalid format: <job> or <app>/<job> required. Example: bamachrn/python")

    validate_name_component(app_id)
    validate_name_component(job_id)
    return {"app_id": app_id, "job_id": job_id}
