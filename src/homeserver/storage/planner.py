"""
Decision logic for the provisioning flow.

Nothing here touches devices: functions take what discovery found plus the
operator's answer and return what should happen next. Effects live in
``homeserver.storage.mounts`` and ``homeserver.storage.layout``.
"""
from typing import List, Optional

from homeserver.storage.models import (
    BlockDevice,
    PartitionAction,
    PartitionPlan,
    Selection,
    SelectionStatus,
    TargetPartition,
)
from homeserver.storage.naming import naming_for

SKIP_ANSWERS = ("", "skip", "s", "none", "n", "no")

# Signatures blkid reports that are not data filesystems we can mount
NON_MOUNTABLE_SIGNATURES = {
    "swap",
    "LVM2_member",
    "crypto_LUKS",
    "linux_raid_member",
    "zfs_member",
    "bcache",
    "ceph_bluestore",
}


def _normalize(choice: str) -> str:
    choice = choice.strip()
    if choice.startswith("/dev/"):
        return choice[len("/dev/"):]
    return choice


def select_target(candidates: List[BlockDevice], choice: Optional[str]) -> Selection:
    """Match the operator's answer against the candidate disks."""
    if choice is None or choice.strip().lower() in SKIP_ANSWERS:
        return Selection(status=SelectionStatus.SKIPPED, message="Disk setup skipped")

    name = _normalize(choice)
    for disk in candidates:
        if disk.name == name or disk.path == choice.strip():
            return Selection(status=SelectionStatus.SELECTED, disk=disk)

    names = ", ".join(d.name for d in candidates)
    return Selection(
        status=SelectionStatus.INVALID,
        message=f"'{choice.strip()}' is not one of the available disks ({names})",
    )


def largest_partition(disk: BlockDevice) -> BlockDevice:
    # max() keeps the first of equal sizes, i.e. lsblk order
    return max(disk.partitions, key=lambda p: p.size)


def plan_partition(disk: BlockDevice, filesystem: str = "ext4") -> PartitionPlan:
    partitions = disk.partitions

    if not partitions:
        path = naming_for(disk.path).partition_path(disk.path, 1)
        return PartitionPlan(
            disk=disk,
            action=PartitionAction.CREATE_AND_FORMAT,
            partition=TargetPartition(path=path, fstype=filesystem, size=disk.size),
            reason=f"{disk.path} has no partitions",
        )

    part = largest_partition(disk)
    target = TargetPartition(path=part.path, fstype=part.fstype, uuid=part.uuid, size=part.size)

    if not part.fstype:
        target.fstype = filesystem
        return PartitionPlan(
            disk=disk,
            action=PartitionAction.FORMAT_EXISTING,
            partition=target,
            reason=f"{part.path} has no filesystem",
        )

    if part.fstype in NON_MOUNTABLE_SIGNATURES:
        return PartitionPlan(
            disk=disk,
            action=PartitionAction.UNSUPPORTED,
            partition=target,
            reason=f"{part.path} holds a {part.fstype} signature, not a mountable filesystem",
        )

    return PartitionPlan(
        disk=disk,
        action=PartitionAction.USE_EXISTING,
        partition=target,
        reason=f"{part.path} already has a {part.fstype} filesystem",
    )


def confirmation_prompt(plan: PartitionPlan) -> str:
    if plan.action == PartitionAction.CREATE_AND_FORMAT:
        return (
            f"{plan.disk.path} has no partitions. Create a single partition and format it as "
            f"{plan.partition.fstype}? ALL DATA ON {plan.disk.path} WILL BE ERASED"
        )
    return (
        f"{plan.partition.path} has no filesystem. Format it as {plan.partition.fstype}? "
        f"ANY DATA ON {plan.partition.path} WILL BE ERASED"
    )
