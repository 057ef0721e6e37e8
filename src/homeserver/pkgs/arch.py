import subprocess

from homeserver.pkgs.base import PackageManager


class ArchPackageManager(PackageManager):
    def install(self, packages):
        subprocess.run(["pacman", "-Sy", "--noconfirm", *packages], check=True)

    def get_install_command(self, packages) -> str:
        return f"pacman -Sy --noconfirm {' '.join(packages)}"
