import logging
import os
import stat
import subprocess
import time
from typing import List, Optional

from homeserver.storage.fstab import fsck_pass_for

logger = logging.getLogger(__name__)

# mkfs force flags; without them mkfs refuses devices that carry old signatures
MKFS_FORCE_FLAGS = {
    "ext2": "-F",
    "ext3": "-F",
    "ext4": "-F",
    "xfs": "-f",
    "btrfs": "-f",
}


class StorageError(RuntimeError):
    """Raised when an operating system command fails during provisioning."""


def _run(cmd: List[str], check: bool = True) -> subprocess.CompletedProcess:
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=check)
    except FileNotFoundError as e:
        raise StorageError(f"Command not found: {cmd[0]}") from e
    except subprocess.CalledProcessError as e:
        msg = (e.stderr or e.stdout or "").strip() or f"exit status {e.returncode}"
        raise StorageError(f"'{' '.join(cmd)}' failed: {msg}") from e
    return result


def udev_settle():
    # Best effort: minimal hosts and containers ship without udev
    try:
        subprocess.run(["udevadm", "settle"], check=False)
    except FileNotFoundError:
        logger.debug("udevadm not found, skipping settle")


def is_block_device(path: str) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISBLK(st.st_mode)


def wait_for_block_device(path: str, timeout: float = 10.0):
    """Wait until the kernel and udev have created the device node."""
    deadline = time.monotonic() + timeout
    while not is_block_device(path):
        if time.monotonic() >= deadline:
            raise StorageError(f"Block device {path} did not appear within {timeout:.0f}s")
        udev_settle()
        time.sleep(0.2)


def create_partition(disk_path: str, fstype: str = "ext4"):
    """Write a new GPT label with one partition spanning the whole disk."""
    logger.info(f"Creating GPT partition table on {disk_path}")
    _run(["parted", "-s", disk_path, "mklabel", "gpt"])
    _run(["parted", "-s", "-a", "optimal", disk_path, "mkpart", "primary", fstype, "0%", "100%"])
    # Ask the kernel to re-read the table; partprobe is best effort on busy systems
    _run(["partprobe", disk_path], check=False)
    udev_settle()


def format_partition(partition_path: str, fstype: str = "ext4", label: Optional[str] = None):
    logger.info(f"Formatting {partition_path} as {fstype}")
    cmd = [f"mkfs.{fstype}"]
    if fstype in MKFS_FORCE_FLAGS:
        cmd.append(MKFS_FORCE_FLAGS[fstype])
    if label:
        cmd += ["-L", label]
    cmd.append(partition_path)
    _run(cmd)
    udev_settle()


def _blkid_value(path: str, tag: str) -> Optional[str]:
    # blkid exits 2 when the tag is absent
    result = _run(["blkid", "-s", tag, "-o", "value", path], check=False)
    value = (result.stdout or "").strip()
    return value or None


def get_fstype(path: str) -> Optional[str]:
    return _blkid_value(path, "TYPE")


def get_uuid(path: str) -> str:
    uuid = _blkid_value(path, "UUID")
    if not uuid:
        raise StorageError(f"Could not read filesystem UUID of {path}")
    return uuid


def mount_partition(partition_path: str, mount_path: str, fstype: Optional[str] = None):
    try:
        os.makedirs(mount_path, exist_ok=True)
    except OSError as e:
        raise StorageError(f"Could not create mount point {mount_path}: {e}") from e

    cmd = ["mount"]
    if fstype:
        cmd += ["-t", fstype]
    cmd += [partition_path, mount_path]
    logger.info(f"Mounting {partition_path} at {mount_path}")
    _run(cmd)


def manual_mount_instructions(mount_path: str, fstype: str = "ext4", device: str = "/dev/sdX1") -> List[str]:
    return [
        f"sudo mkfs.{fstype} {device}",
        f"sudo mkdir -p {mount_path}",
        f"sudo mount {device} {mount_path}",
        f"echo \"UUID=$(sudo blkid -s UUID -o value {device}) {mount_path} {fstype} defaults,nofail 0 {fsck_pass_for(fstype)}\" | sudo tee -a /etc/fstab",
    ]
