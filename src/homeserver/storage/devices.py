import logging
from typing import Any, Dict, List, Optional
from homeserver.hwosinfo.hw import get_disks as get_raw_disks, get_root_source, get_device_ancestors
from homeserver.storage.models import BlockDevice

logger = logging.getLogger(__name__)

SYSTEM_MOUNTPOINTS = ["/", "/boot", "/boot/efi", "/boot/firmware"]

def _as_bool(value: Any) -> bool:
    # Older lsblk versions report RM as "0"/"1" strings
    if isinstance(value, str):
        return value.strip() in ("1", "true")
    return bool(value)

def parse_device(raw: Dict[str, Any]) -> BlockDevice:
    name = raw.get("name", "")
    return BlockDevice(
        name=name,
        path=raw.get("path") or f"/dev/{name}",
        size=int(raw.get("size") or 0),
        type=raw.get("type") or "",
        removable=_as_bool(raw.get("rm")),
        fstype=raw.get("fstype") or None,
        uuid=raw.get("uuid") or None,
        mountpoint=raw.get("mountpoint") or None,
        parent=raw.get("pkname") or None,
        model=raw.get("model") or None,
        children=[parse_device(c) for c in raw.get("children") or []],
    )

def list_block_devices(device: Optional[str] = None) -> List[BlockDevice]:
    return [parse_device(d) for d in get_raw_disks(device)]

def find_disk_ancestors(tree: List[Dict[str, Any]]) -> List[str]:
    """Walk an inverse lsblk tree and collect the names of the physical disks at the bottom."""
    disks = []
    stack = list(tree)
    while stack:
        node = stack.pop()
        if node.get("type") == "disk":
            name = node.get("name")
            if name and name not in disks:
                disks.append(name)
            continue
        stack.extend(node.get("children") or [])
    return disks

def get_boot_disks() -> List[str]:
    """
    Resolve the disk(s) backing the root filesystem.
    More than one disk is returned when root sits on RAID or spanned LVM.
    """
    source = get_root_source()
    if not source or not source.startswith("/dev/"):
        logger.warning(f"Root filesystem source {source!r} is not a block device")
        return []
    disks = find_disk_ancestors(get_device_ancestors(source))
    logger.debug(f"Root source {source} resides on {disks}")
    return disks

def is_system_disk(device: BlockDevice) -> bool:
    """A disk that carries system mount points or swap, whatever the root source says."""
    stack = [device]
    while stack:
        node = stack.pop()
        if node.mountpoint in SYSTEM_MOUNTPOINTS:
            return True
        if node.fstype == "swap":
            return True
        stack.extend(node.children)
    return False

def filter_candidates(devices: List[BlockDevice], boot_disks: List[str]) -> List[BlockDevice]:
    candidates = []
    for device in devices:
        if device.type != "disk":
            continue
        if device.removable:
            logger.debug(f"Skipping removable disk {device.name}")
            continue
        if device.name in boot_disks:
            logger.debug(f"Skipping boot disk {device.name}")
            continue
        if is_system_disk(device):
            logger.debug(f"Skipping system disk {device.name}")
            continue
        candidates.append(device)
    return candidates

def discover_candidates() -> List[BlockDevice]:
    """
    List non-removable whole disks other than the boot disk, in lsblk order.
    An empty list means no secondary storage is attached.
    """
    boot_disks = get_boot_disks()
    return filter_candidates(list_block_devices(), boot_disks)
