import logging
import os
import pwd
from typing import List, Optional

from homeserver.storage.models import LayoutResult

logger = logging.getLogger(__name__)

# Relative to the storage mount root, parents before children
LAYOUT_DIRECTORIES = [
    "media",
    "media/movies",
    "media/tv",
    "media/music",
    "backups",
    "docker",
    "projects",
]

# Handed to the operator; docker data stays root-owned
OPERATOR_OWNED = ["media", "backups", "projects"]


def _chown_tree(path: str, uid: int, gid: int) -> List[str]:
    changed = []
    os.chown(path, uid, gid)
    changed.append(path)
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            full = os.path.join(root, name)
            os.chown(full, uid, gid, follow_symlinks=False)
            changed.append(full)
    return changed


def ensure_legacy_link(legacy_path: str, media_path: str) -> bool:
    """
    Point the legacy media path at the new media directory.
    Anything already at legacy_path (directory, file or link) is left alone.
    """
    if os.path.lexists(legacy_path):
        if os.path.islink(legacy_path):
            logger.info(f"{legacy_path} already links to {os.readlink(legacy_path)}")
        else:
            logger.warning(f"{legacy_path} exists and is not a symlink, leaving it untouched")
        return False

    parent = os.path.dirname(legacy_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    os.symlink(media_path, legacy_path)
    logger.info(f"Linked {legacy_path} -> {media_path}")
    return True


def establish_layout(mount_path: str, owner: Optional[str] = None, legacy_media_path: Optional[str] = None) -> LayoutResult:
    """Create the storage directory tree. Safe to call repeatedly."""
    result = LayoutResult(mount_path=mount_path, owner=owner)

    for rel in LAYOUT_DIRECTORIES:
        path = os.path.join(mount_path, rel)
        if not os.path.isdir(path):
            result.created.append(path)
        os.makedirs(path, exist_ok=True)
        result.directories.append(path)

    if owner:
        try:
            pw = pwd.getpwnam(owner)
        except KeyError:
            logger.warning(f"User {owner} does not exist, skipping ownership changes")
        else:
            for rel in OPERATOR_OWNED:
                path = os.path.join(mount_path, rel)
                _chown_tree(path, pw.pw_uid, pw.pw_gid)
                result.owned.append(path)
            logger.info(f"Ownership of {', '.join(OPERATOR_OWNED)} set to {owner}")

    if legacy_media_path:
        result.legacy_link = legacy_media_path
        result.legacy_link_created = ensure_legacy_link(legacy_media_path, os.path.join(mount_path, "media"))

    return result
