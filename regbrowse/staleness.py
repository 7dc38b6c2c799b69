"""
Staleness oracle for cache slots.

Each slot keeps the build number of its installed content in a BuildNumber
file (the watermark). A slot is stale when it has no watermark yet or when
the build system reports a different build number. Build numbers are opaque
tokens: they are compared for equality only.
"""

import logging
import os

logger = logging.getLogger(__name__)

WATERMARK_FILE = "BuildNumber"


def ensure_slot_dir(slot: str) -> None:
    """Create the slot directory (and parents) if it does not exist."""
    os.makedirs(slot, mode=0o777, exist_ok=True)


def read_watermark(slot: str) -> str | None:
    """Return the stored build number of a slot, or None if it has none."""
    path = os.path.join(slot, WATERMARK_FILE)
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read().strip()
    except FileNotFoundError:
        return None


def is_stale(slot: str, latest_build_number) -> bool:
    """
    Decide whether a slot needs refreshing.

    Args:
        slot: Cache slot directory (created if missing)
        latest_build_number: Build number reported by the build system

    Returns:
        True if the slot has no watermark or its watermark differs from
        latest_build_number
    """
    ensure_slot_dir(slot)
    stored = read_watermark(slot)
    latest = _token(latest_build_number)

    if stored is None:
        logger.info(f"{slot} processed for the first time (build {latest})")
        return True

    if stored != latest:
        logger.info(f"{slot} is stale: cached build {stored}, latest build {latest}")
        return True

    logger.debug(f"{slot} is up to date at build {stored}")
    return False


def record_watermark(slot: str, build_number) -> None:
    """Write build_number as the slot's watermark, replacing any previous value."""
    ensure_slot_dir(slot)
    path = os.path.join(slot, WATERMARK_FILE)
    tmp = os.path.join(slot, f".{WATERMARK_FILE}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(_token(build_number))
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)
    logger.debug(f"Recorded watermark {build_number} for {slot}")


def _token(build_number) -> str:
    return "" if build_number is None else str(build_number).strip()
