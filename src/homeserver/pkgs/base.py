from abc import ABC, abstractmethod


class PackageManager(ABC):
    @abstractmethod
    def install(self, packages):
        pass

    @abstractmethod
    def get_install_command(self, packages) -> str:
        pass
