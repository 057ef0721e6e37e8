from abc import ABC, abstractmethod


class PartitionNaming(ABC):
    @abstractmethod
    def partition_path(self, disk_path: str, number: int) -> str:
        pass


class SuffixNaming(PartitionNaming):
    """sda -> sda1"""

    def partition_path(self, disk_path: str, number: int) -> str:
        return f"{disk_path}{number}"


class SeparatorNaming(PartitionNaming):
    """nvme0n1 -> nvme0n1p1, mmcblk0 -> mmcblk0p1"""

    def partition_path(self, disk_path: str, number: int) -> str:
        return f"{disk_path}p{number}"


def naming_for(disk_path: str) -> PartitionNaming:
    """
    Pick the partition naming convention from the shape of the disk name.
    The kernel inserts a 'p' separator when the disk name already ends with a digit.
    """
    name = disk_path.rstrip("/").rsplit("/", 1)[-1]
    if name[-1:].isdigit():
        return SeparatorNaming()
    return SuffixNaming()
