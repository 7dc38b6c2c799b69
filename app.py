"""
Container registry browser with a local cache of upstream build artifacts.

Lists images and tags of a container registry and augments each tag with the
Dockerfile and README of the project's upstream source repository. Both
files are kept in a local cache, refreshed only when the build system
reports a new build number for the tag.

Architecture:
    1. The container index (index.d YAML files) is cloned and parsed
    2. The build API reports the latest build number of every tag
    3. Build definitions and READMEs are checked over raw-content URLs
    4. Stale cache slots are refreshed concurrently from shallow clones
    5. The HTTP service serves cached artifacts as JSON

Cache Layout:
    {CACHE_DIR}/{app_id}/{job_id}/{tag}/Dockerfile
    {CACHE_DIR}/{app_id}/{job_id}/{tag}/README.md
    {CACHE_DIR}/{app_id}/{job_id}/{tag}/BuildNumber
    Library images omit the {app_id} segment.

Environment Variables:
    LOG_LEVEL, FLASK_HOST, FLASK_PORT, CACHE_DIR, SCRATCH_DIR, INDEX_REPO,
    INDEX_BRANCH, BUILD_API_URL, BUILD_API_NAMESPACE, HTTP_TIMEOUT,
    CLONE_TIMEOUT, REGISTRY_DOMAIN, SYNC_ON_START

Example:
    $ SYNC_ON_START=1 BUILD_API_URL=https://builds.example.org python app.py
    $ curl localhost:8080/containers/bamachrn/python/tags/3.6
"""

import logging

from regbrowse.api import BuildApiClient
from regbrowse.config import config
from regbrowse.errors import ApiError, RegbrowseError
from regbrowse.fetcher import CloneFetcher, RawFileFetcher
from regbrowse.index import retrieve_index
from regbrowse.models import SyncContext
from regbrowse.routes import app
from regbrowse.sync import build_index, sync_batch

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_sync(cfg=config):
    """
    One cache sync pass: index -> build API -> raw index build -> concurrent slot refresh.

    Projects the build API cannot describe are skipped with a warning. The
    raw index build reads every project's build definition and README over
    raw-content URLs and reports the projects whose files are unreachable.

    Returns:
        List of SlotResult
    """
    fetcher = CloneFetcher(scratch_root=cfg.SCRATCH_DIR, timeout=cfg.CLONE_TIMEOUT)
    projects = retrieve_index(cfg.INDEX_REPO, cfg.INDEX_BRANCH, fetcher)

    api = BuildApiClient(cfg.BUILD_API_URL, cfg.BUILD_API_NAMESPACE, timeout=cfg.HTTP_TIMEOUT)
    described = []
    for project in projects:
        try:
            described.append(api.describe(project))
        except ApiError as e:
            logger.warning(f"Skipping {project}: {e}")

    index_context = SyncContext(cache_root=cfg.CACHE_DIR, raw_fetcher=RawFileFetcher(timeout=cfg.HTTP_TIMEOUT))
    entries = build_index(described, index_context)
    unreachable = [entry for entry in entries if not entry.build_definition]
    for entry in unreachable:
        logger.warning(f"No build definition reachable for {entry.descriptor}: {'; '.join(entry.warnings)}")
    logger.info(f"Index built: {len(entries)} projects, {len(unreachable)} without a reachable build definition")

    context = SyncContext(cache_root=cfg.CACHE_DIR, fetcher=fetcher, scratch_root=cfg.SCRATCH_DIR)
    return sync_batch(described, context)


def main():
    """Main entry point for the registry browser."""
    debug_mode = logger.getEffectiveLevel() == logging.DEBUG
    logger.info(f"Starting registry browser on {config.FLASK_HOST}:{config.FLASK_PORT}")
    logger.info(f"Configuration: {config}")

    if config.SYNC_ON_START:
        if not config.BUILD_API_URL:
            logger.error("SYNC_ON_START requires BUILD_API_URL, skipping initial sync")
        else:
            try:
                run_sync()
            except RegbrowseError as e:
                logger.error(f"Initial cache sync failed: {e}")

    if debug_mode:
        logger.info("Flask debug mode enabled")
    app.run(host=config.FLASK_HOST, port=config.FLASK_PORT, debug=debug_mode)


if __name__ == "__main__":
    main()
