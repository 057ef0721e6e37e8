import os
import shlex
from typing import Dict

from homeserver.hwosinfo.models import DistroInfo, OSInfo

OS_RELEASE_PATH = "/etc/os-release"

DISTRO_FAMILIES = {
    "debian": ("debian", "apt"),
    "ubuntu": ("debian", "apt"),
    "linuxmint": ("debian", "apt"),
    "pop": ("debian", "apt"),
    "arch": ("arch", "pacman"),
    "manjaro": ("arch", "pacman"),
    "endeavouros": ("arch", "pacman"),
}


class UnsupportedDistributionError(Exception):
    pass


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse the KEY=value lines of an os-release file."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip('"\'')]
        values[key] = " ".join(parts)
    return values


def get_os_info(path: str = OS_RELEASE_PATH) -> OSInfo:
    if os.path.exists(path):
        with open(path, "r") as f:
            values = parse_os_release(f.read())
        return OSInfo(
            id=values.get("ID", "unknown").lower(),
            id_like=values.get("ID_LIKE", "").lower().split(),
            name=values.get("PRETTY_NAME") or values.get("NAME"),
            version_id=values.get("VERSION_ID"),
        )

    # Older systems without os-release
    if os.path.exists("/etc/debian_version"):
        return OSInfo(id="debian")
    if os.path.exists("/etc/arch-release"):
        return OSInfo(id="arch")
    raise UnsupportedDistributionError("Unable to detect distribution")


def detect_distro(os_info: OSInfo) -> DistroInfo:
    """Map a distribution to its family and package manager."""
    for candidate in [os_info.id] + os_info.id_like:
        if candidate in DISTRO_FAMILIES:
            family, package_manager = DISTRO_FAMILIES[candidate]
            return DistroInfo(id=os_info.id, family=family, package_manager=package_manager)
    raise UnsupportedDistributionError(f"Unsupported distribution: {os_info.id}")
