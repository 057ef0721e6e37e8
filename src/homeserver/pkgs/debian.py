import subprocess

from homeserver.pkgs.base import PackageManager


class DebianPackageManager(PackageManager):
    def install(self, packages):
        subprocess.run(["apt-get", "update"], check=True)
        subprocess.run(["apt-get", "install", "-y", *packages], check=True)

    def get_install_command(self, packages) -> str:
        return f"apt-get install -y {' '.join(packages)}"
