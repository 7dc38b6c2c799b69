"""
Cache installer module for the registry browser.

Materializes fetched content into a cache slot. Every file goes through
install_file(), which hard-links when it can and falls back to a synced copy
when it cannot. The build-definition file is always left present: when it
could not be fetched, a fixed placeholder explaining its absence is installed
instead.
"""

import logging
import os
import shutil
import tempfile

from .errors import InstallFailed

logger = logging.getLogger(__name__)

README_NAME = "README.md"

PREBUILD_PLACEHOLDER = (
    "# A pre-build was requested for this image.\n"
    "# The Dockerfile is generated by the pre-build step and is not available yet.\n"
)

MISSING_PLACEHOLDER = (
    "# The Dockerfile for this image does not exist in its source repository\n"
    "# or could not be retrieved.\n"
)


def fallback_payload(prebuild_requested: bool) -> bytes:
    """Placeholder installed when the build definition could not be fetched."""
    if prebuild_requested:
        return PREBUILD_PLACEHOLDER.encode("utf-8")
    return MISSING_PLACEHOLDER.encode("utf-8")


def _same_file(src: str, dst: str) -> bool:
    try:
        return os.path.isfile(src) and os.path.isfile(dst) and os.path.samefile(src, dst)
    except OSError:
        return False


def _temp_name(dst: str) -> str:
    directory, name = os.path.split(dst)
    fd, tmp = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory or ".")
    os.close(fd)
    os.unlink(tmp)
    return tmp


def _copy_synced(src: str, dst: str) -> None:
    tmp = _temp_name(dst)
    try:
        with open(src, "rb") as fin, open(tmp, "wb") as fout:
            shutil.copyfileobj(fin, fout)
            fout.flush()
            os.fsync(fout.fileno())
        shutil.copymode(src, tmp)
        os.replace(tmp, dst)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def install_file(src: str, dst: str) -> None:
    """
    Install src at dst: hard link first, synced copy as fallback.

    The destination is replaced atomically (link or copy goes to a temporary
    name in the destination directory, then os.replace). If dst already is
    the same file as src, nothing is touched.

    Raises:
        InstallFailed: If neither linking nor copying succeeded
    """
    if _same_file(src, dst):
        logger.debug(f"{dst} already installed from {src}")
        return

    try:
        tmp = _temp_name(dst)
        try:
            os.link(src, tmp)
            os.replace(tmp, dst)
            logger.debug(f"Linked {src} -> {dst}")
            return
        except OSError as e:
            if os.path.lexists(tmp):
                os.unlink(tmp)
            logger.debug(f"Hard link {src} -> {dst} failed ({e}), copying")

        _copy_synced(src, dst)
        logger.debug(f"Copied {src} -> {dst}")
    except OSError as e:
        raise InstallFailed(f"Unable to install {src} to {dst}: {e}") from e


def install(
    slot: str,
    file_name: str,
    content: bytes | None,
    fallback_eligible: bool = False,
    prebuild_requested: bool = False,
) -> str:
    """
    Install content as slot/file_name.

    Content is first written to a staging file inside the slot (same
    filesystem, so the hard link normally succeeds) and then installed with
    install_file(). When content is None and the file is fallback eligible,
    the matching placeholder is installed instead.

    Args:
        slot: Cache slot directory (must exist)
        file_name: Destination file name inside the slot
        content: Bytes to install, or None if the fetch failed
        fallback_eligible: Install a placeholder when content is None
        prebuild_requested: Selects the pre-build placeholder

    Returns:
        Path of the installed file

    Raises:
        InstallFailed: On filesystem errors, or when content is None and the
            file is not fallback eligible
    """
    dst = os.path.join(slot, file_name)
    if content is None:
        if not fallback_eligible:
            raise InstallFailed(f"No content to install for {dst}")
        content = fallback_payload(prebuild_requested)
        logger.info(f"Installing placeholder {file_name} in {slot} (prebuild={prebuild_requested})")

    try:
        fd, staging = tempfile.mkstemp(prefix=f".{file_name}.", suffix=".staging", dir=slot)
    except OSError as e:
        raise InstallFailed(f"Unable to stage {dst}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(staging, 0o644)
        install_file(staging, dst)
    except OSError as e:
        raise InstallFailed(f"Unable to write {dst}: {e}") from e
    finally:
        if os.path.exists(staging):
            os.unlink(staging)

    return dst


def install_build_definition(slot: str, file_name: str, content: bytes | None, prebuild_requested: bool) -> str:
    """
    Install the build definition, or a placeholder when it is unavailable.

    If installing the real content fails, the placeholder is tried once so
    the slot never ends up without the file.

    Raises:
        InstallFailed: Only if the placeholder could not be installed either
    """
    try:
        return install(slot, file_name, content, fallback_eligible=True, prebuild_requested=prebuild_requested)
    except InstallFailed as e:
        if content is None:
            raise
        logger.error(f"Installing {file_name} in {slot} failed: {e}; installing placeholder")
        return install(slot, file_name, None, fallback_eligible=True, prebuild_requested=prebuild_requested)


def install_readme(slot: str, content: bytes | None) -> str | None:
    """
    Install README.md; failures are logged and otherwise ignored.

    Returns:
        Path of the installed README, or None if nothing was installed
    """
    if content is None:
        logger.warning(f"No README available for {slot}")
        return None
    try:
        return install(slot, README_NAME, content)
    except InstallFailed as e:
        logger.warning(f"README install failed for {slot}: {e}")
        return None


def prune_slot(slot: str, keep) -> list[str]:
    """
    Remove files of earlier builds from a slot.

    Anything that is not in keep and not a dot-file is deleted, e.g. the
    previous Dockerfile after the target file was renamed, or the previous
    README when the new build has none.

    Returns:
        Names of the removed files

    Raises:
        InstallFailed: If a stale file cannot be removed
    """
    removed = []
    for name in sorted(os.listdir(slot)):
        path = os.path.join(slot, name)
        if name in keep or name.startswith(".") or not os.path.isfile(path):
            continue
        try:
            os.unlink(path)
        except OSError as e:
            raise InstallFailed(f"Unable to remove stale {path}: {e}") from e
        logger.info(f"Removed stale {name} from {slot}")
        removed.append(name)
    return removed
