import shutil
from typing import Dict, List, Optional

from homeserver.hwosinfo.models import DistroInfo
from homeserver.pkgs.arch import ArchPackageManager
from homeserver.pkgs.base import PackageManager
from homeserver.pkgs.debian import DebianPackageManager

# Executable -> package providing it, per distro family
STORAGE_TOOLS: Dict[str, Dict[str, str]] = {
    "blkid": {"debian": "util-linux", "arch": "util-linux"},
    "lsblk": {"debian": "util-linux", "arch": "util-linux"},
    "findmnt": {"debian": "util-linux", "arch": "util-linux"},
    "mount": {"debian": "mount", "arch": "util-linux"},
}

# Only needed when a new partition table is written
PARTITION_TOOLS: Dict[str, Dict[str, str]] = {
    "parted": {"debian": "parted", "arch": "parted"},
    "partprobe": {"debian": "parted", "arch": "parted"},
}

FILESYSTEM_PACKAGES: Dict[str, Dict[str, str]] = {
    "ext4": {"debian": "e2fsprogs", "arch": "e2fsprogs"},
    "xfs": {"debian": "xfsprogs", "arch": "xfsprogs"},
    "btrfs": {"debian": "btrfs-progs", "arch": "btrfs-progs"},
}


def get_package_manager(distro: DistroInfo) -> PackageManager:
    if distro.family == "arch":
        return ArchPackageManager()
    elif distro.family == "debian":
        return DebianPackageManager()
    else:
        raise Exception(f"Unsupported distribution family: {distro.family}")


def required_storage_tools(filesystem: Optional[str] = None, partition: bool = False) -> Dict[str, Dict[str, str]]:
    """
    parted is only required when partition is set, and mkfs only when
    filesystem is given, i.e. something will be formatted.
    """
    tools = dict(STORAGE_TOOLS)
    if partition:
        tools.update(PARTITION_TOOLS)
    if not filesystem:
        return tools
    tools[f"mkfs.{filesystem}"] = FILESYSTEM_PACKAGES.get(
        filesystem, {"debian": f"{filesystem}-progs", "arch": f"{filesystem}-progs"}
    )
    return tools


def missing_storage_tools(
    filesystem: Optional[str] = None,
    distro: Optional[DistroInfo] = None,
    partition: bool = False,
) -> List[str]:
    """Return the packages to install for storage tools that are not on PATH."""
    family = distro.family if distro else "debian"
    packages = []
    for tool, providers in required_storage_tools(filesystem, partition).items():
        if shutil.which(tool):
            continue
        package = providers.get(family, tool)
        if package not in packages:
            packages.append(package)
    return packages


def install_hint(packages: List[str], distro: Optional[DistroInfo] = None) -> str:
    if distro is None:
        return f"the system package manager ({' '.join(packages)})"
    return get_package_manager(distro).get_install_command(packages)
