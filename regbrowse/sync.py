"""
Fan-out coordinator for cache syncs and index builds.

Runs one worker thread per descriptor and joins all of them before
returning. Each worker owns exactly one cache slot (and one scratch clone
directory), so workers never share a path and no locking is needed. Batches
for the same key must not overlap in time.

Per-item failures become warnings on that item's SlotResult; only a batch
that cannot start (cache root or scratch namespace unavailable) raises.
"""

import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor

from .errors import InstallFailed, RegbrowseError, SyncError
from .fetcher import fetch_readme, remove_scratch
from .installer import README_NAME, install_build_definition, install_readme, prune_slot
from .locator import slot_path
from .models import IndexEntry, ProjectDescriptor, SlotResult, SyncContext
from .staleness import WATERMARK_FILE, is_stale, record_watermark
from .validation import is_valid_component, is_valid_tag

logger = logging.getLogger(__name__)


def _check_key(descriptor: ProjectDescriptor) -> None:
    app_id, job_id, tag = descriptor.key
    if not (is_valid_component(app_id) and is_valid_component(job_id) and is_valid_tag(tag)):
        raise RegbrowseError(f"Invalid cache key {descriptor.key!r}")


def _refresh(descriptor: ProjectDescriptor, slot: str, context: SyncContext, scratch_root: str, result: SlotResult):
    """Clone once, install build definition and README, drop files of earlier builds. Raises InstallFailed."""
    with context.fetcher.checkout(descriptor, scratch_root) as clone:
        build_def = clone.fetch(descriptor.target_file, descriptor.git_path)
        readme = fetch_readme(clone.fetch, descriptor.git_path)

    if not build_def.ok:
        result.warnings.append(f"{descriptor.target_file}: {build_def.error}")
        logger.warning(f"Unable to retrieve {descriptor.target_file} for {descriptor}: {build_def.error}")
    install_build_definition(
        slot,
        descriptor.build_definition_name,
        build_def.content,
        descriptor.prebuild_requested,
    )

    if not readme.ok:
        result.warnings.append(f"{README_NAME}: {readme.error}")
    keep = {descriptor.build_definition_name, WATERMARK_FILE}
    if install_readme(slot, readme.content) is not None:
        keep.add(README_NAME)
    prune_slot(slot, keep)


def sync_slot(descriptor: ProjectDescriptor, context: SyncContext, scratch_root: str) -> SlotResult:
    """
    Bring one cache slot up to date with the descriptor's build number.

    Steps: staleness check, then (if stale) clone + fetch + install of the
    build definition and README, then watermark update. The watermark is
    written on every pass unless installing the build definition failed, in
    which case the previous watermark is kept so the next pass retries.

    Returns:
        SlotResult; never raises, any per-item failure becomes a warning
    """
    slot = slot_path(context.cache_root, descriptor)
    result = SlotResult(key=descriptor.key, slot=slot)

    try:
        _check_key(descriptor)
        result.stale = is_stale(slot, descriptor.build_number)
        if result.stale:
            _refresh(descriptor, slot, context, scratch_root, result)
            result.refreshed = True
        record_watermark(slot, descriptor.build_number)
    except InstallFailed as e:
        result.warnings.append(str(e))
        logger.error(f"Install failed for {descriptor}: {e}")
    except (RegbrowseError, OSError) as e:
        result.warnings.append(str(e))
        logger.warning(f"Sync failed for {descriptor}: {e}")
    except Exception as e:
        result.warnings.append(f"{type(e).__name__}: {e}")
        logger.exception(f"Unexpected error while syncing {descriptor}")

    if result.refreshed:
        logger.info(f"Refreshed {descriptor} at build {descriptor.build_number}")
    return result


def _unique(descriptors: list[ProjectDescriptor]) -> list[ProjectDescriptor]:
    seen = set()
    unique = []
    for descriptor in descriptors:
        if descriptor.key in seen:
            logger.warning(f"Duplicate key {descriptor.key} in batch, skipping")
            continue
        seen.add(descriptor.key)
        unique.append(descriptor)
    return unique


def sync_batch(descriptors, context: SyncContext) -> list[SlotResult]:
    """
    Sync every descriptor's cache slot concurrently.

    Args:
        descriptors: Iterable of ProjectDescriptor (keys unique within a batch;
            repeated keys are dropped with a warning)
        context: Cache root, clone fetcher and scratch location

    Returns:
        One SlotResult per unique descriptor, in input order

    Raises:
        SyncError: If the descriptors cannot be enumerated, or the cache root
            or scratch namespace cannot be created
    """
    try:
        batch = _unique(list(descriptors))
    except (TypeError, RegbrowseError) as e:
        raise SyncError(f"Unable to enumerate descriptors: {e}") from e

    try:
        os.makedirs(context.cache_root, mode=0o777, exist_ok=True)
        scratch_root = tempfile.mkdtemp(prefix="regbrowse-sync-", dir=context.scratch_root)
    except OSError as e:
        raise SyncError(f"Unable to start sync batch: {e}") from e

    logger.info(f"Syncing {len(batch)} cache slots under {context.cache_root}")
    try:
        if not batch:
            return []
        with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="sync") as executor:
            results = list(executor.map(lambda d: sync_slot(d, context, scratch_root), batch))
    finally:
        remove_scratch(scratch_root)

    refreshed = sum(1 for r in results if r.refreshed)
    failed = sum(1 for r in results if not r.ok)
    logger.info(f"Sync complete: {len(results)} slots, {refreshed} refreshed, {failed} with warnings")
    return results


def _index_entry(descriptor: ProjectDescriptor, raw_fetcher) -> IndexEntry:
    entry = IndexEntry(descriptor=descriptor)

    build_def = raw_fetcher.fetch(descriptor, descriptor.target_file, descriptor.git_path)
    if build_def.ok:
        entry.build_definition = build_def.text()
    else:
        logger.warning(f"Unable to retrieve '{descriptor.git_url}' '{descriptor.git_branch}': {build_def.error}")
        entry.warnings.append(str(build_def.error))

    readme = fetch_readme(lambda name, path: raw_fetcher.fetch(descriptor, name, path), descriptor.git_path)
    if readme.ok:
        entry.readme = readme.text()
    else:
        entry.warnings.append(str(readme.error))
    return entry


def build_index(descriptors, context: SyncContext) -> list[IndexEntry]:
    """
    Index-build phase: fetch build definition and README of every project over raw URLs.

    Read-only; nothing is written to the cache. Runs one thread per
    descriptor and returns entries in input order.
    """
    batch = list(descriptors)
    if not batch:
        return []
    logger.info(f"Retrieving build definitions for {len(batch)} projects")
    with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="index") as executor:
        return list(executor.map(lambda d: _index_entry(d, context.raw_fetcher), batch))
