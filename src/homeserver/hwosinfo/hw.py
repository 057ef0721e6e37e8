import json
import logging
import os
import subprocess
from typing import Any, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)

LSBLK_COLUMNS = "NAME,PATH,SIZE,TYPE,RM,FSTYPE,UUID,MOUNTPOINT,PKNAME,MODEL"

def get_disks(device: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return a list of block devices and their children as reported by lsblk."""
    # -J: JSON output
    # -b: Bytes
    # -o: Specific columns
    cmd = ["lsblk", "-J", "-b", "-o", LSBLK_COLUMNS]
    if device:
        cmd.append(device)
    logger.debug(f"Running: {' '.join(cmd)}")
    output = subprocess.check_output(cmd).decode()
    data = json.loads(output)
    return data["blockdevices"]


def get_root_source() -> Optional[str]:
    """Return the device backing the root filesystem, e.g. /dev/sda2."""
    try:
        result = subprocess.run(
            ["findmnt", "-n", "-o", "SOURCE", "/"],
            capture_output=True, text=True, check=True
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        logger.warning(f"Could not resolve root filesystem source: {e}")
        return None

    source = result.stdout.strip()
    # btrfs subvolume mounts are reported as /dev/sda2[/@]
    if "[" in source:
        source = source.split("[", 1)[0]
    return source or None


def get_device_ancestors(device: str) -> List[Dict[str, Any]]:
    """
    Return the inverse dependency tree of a device (lsblk -s).
    The top-level node is the device itself, its children are the devices it sits on.
    """
    cmd = ["lsblk", "-J", "-s", "-o", "NAME,PATH,TYPE", device]
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        output = subprocess.check_output(cmd).decode()
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        logger.warning(f"Could not list ancestors of {device}: {e}")
        return []
    return json.loads(output).get("blockdevices", [])


def is_mounted(path: str) -> bool:
    """Check whether path is currently a mount point."""
    return get_mount_device(path) is not None


def get_mount_device(path: str) -> Optional[str]:
    # Kernel mount points are canonical, so resolve trailing slashes and symlinks
    path = os.path.realpath(path)
    for part in psutil.disk_partitions(all=True):
        if part.mountpoint == path:
            return part.device
    return None


def get_disk_usage(path: str) -> Dict[str, Any]:
    usage = psutil.disk_usage(path)
    return {
        'total': usage.total,
        'used': usage.used,
        'free': usage.free,
        'percentage': usage.percent,
    }
