import json
import logging
import subprocess
from typing import Callable, List, Optional, Tuple

from homeserver.config.settings import Config
from homeserver.hwosinfo.hw import is_mounted
from homeserver.pkgs.manager import install_hint, missing_storage_tools
from homeserver.storage.devices import discover_candidates
from homeserver.storage.fstab import build_record, ensure_record
from homeserver.storage.layout import establish_layout
from homeserver.storage.models import (
    BlockDevice,
    LayoutResult,
    MountRecord,
    PartitionAction,
    PartitionPlan,
    ProvisionResult,
    ProvisionStatus,
    Selection,
    SelectionStatus,
    TargetPartition,
)
from homeserver.storage.mounts import (
    StorageError,
    create_partition,
    format_partition,
    get_uuid,
    is_block_device,
    mount_partition,
    wait_for_block_device,
)
from homeserver.storage.planner import confirmation_prompt, plan_partition, select_target

logger = logging.getLogger(__name__)

ChooseDisk = Callable[[List[BlockDevice]], Optional[str]]
Confirm = Callable[[str], bool]
Notify = Callable[[str], None]


class StorageProvisioner:
    def __init__(self, config: Config):
        self.config = config

    def check_existing_mount(self) -> bool:
        return is_mounted(self.config.mount_path)

    def discover(self) -> List[BlockDevice]:
        try:
            return discover_candidates()
        except (subprocess.CalledProcessError, FileNotFoundError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not list block devices: {e}") from e

    def choose_target(self, candidates: List[BlockDevice], choose: ChooseDisk, notify: Notify) -> Selection:
        """Ask for a disk until the answer is valid, skipped, or attempts run out."""
        selection = Selection(status=SelectionStatus.INVALID, message="No disk selected")
        for _ in range(max(1, self.config.selection_attempts)):
            selection = select_target(candidates, choose(candidates))
            if selection.status == SelectionStatus.SELECTED and not is_block_device(selection.disk.path):
                selection = Selection(
                    status=SelectionStatus.INVALID,
                    message=f"{selection.disk.path} is not a block device",
                )
            if selection.status != SelectionStatus.INVALID:
                return selection
            notify(selection.message)
        return selection

    def check_tools(self, plan: PartitionPlan):
        filesystem = self.config.filesystem if plan.needs_confirmation else None
        partition = plan.action == PartitionAction.CREATE_AND_FORMAT
        missing = missing_storage_tools(filesystem, self.config.distro, partition=partition)
        if missing:
            raise StorageError(
                f"Missing required packages: {', '.join(missing)}. "
                f"Install them with: {install_hint(missing, self.config.distro)}"
            )

    def resolve_partition(self, plan: PartitionPlan) -> TargetPartition:
        """Carry out a confirmed plan and return the partition ready to mount."""
        partition = plan.partition.model_copy()

        if plan.action == PartitionAction.CREATE_AND_FORMAT:
            create_partition(plan.disk.path, self.config.filesystem)
            wait_for_block_device(partition.path)
            format_partition(partition.path, self.config.filesystem)
            partition.fstype = self.config.filesystem
        elif plan.action == PartitionAction.FORMAT_EXISTING:
            format_partition(partition.path, self.config.filesystem)
            partition.fstype = self.config.filesystem
        elif plan.action == PartitionAction.UNSUPPORTED:
            raise StorageError(plan.reason)

        return partition

    def mount_and_persist(self, partition: TargetPartition) -> Tuple[MountRecord, bool]:
        mount_partition(partition.path, self.config.mount_path, partition.fstype)

        partition.uuid = get_uuid(partition.path)
        record = build_record(
            partition.uuid,
            self.config.mount_path,
            partition.fstype,
            self.config.mount_options,
        )
        try:
            added = ensure_record(record, self.config.fstab_path)
        except OSError as e:
            raise StorageError(f"Could not update {self.config.fstab_path}: {e}") from e
        return record, added

    def establish_layout(self) -> LayoutResult:
        try:
            return establish_layout(
                self.config.mount_path,
                owner=self.config.operator,
                legacy_media_path=self.config.legacy_media_path,
            )
        except OSError as e:
            raise StorageError(f"Could not create storage layout: {e}") from e

    def provision(self, choose: ChooseDisk, confirm: Confirm, notify: Optional[Notify] = None) -> ProvisionResult:
        """
        Run the whole flow: mount check, discovery, selection, partitioning,
        mounting, mount table and layout.

        Recoverable outcomes come back as a ProvisionResult. StorageError is
        raised when a system command fails, before any layout is created.
        """
        notify = notify or logger.warning
        mount_path = self.config.mount_path

        if self.check_existing_mount():
            logger.info(f"{mount_path} is already mounted")
            return ProvisionResult(
                status=ProvisionStatus.ALREADY_MOUNTED,
                message=f"Storage already mounted at {mount_path}",
                layout=self.establish_layout(),
            )

        candidates = self.discover()
        if not candidates:
            return ProvisionResult(
                status=ProvisionStatus.NO_CANDIDATES,
                message="No secondary disk found",
            )

        selection = self.choose_target(candidates, choose, notify)
        if selection.status == SelectionStatus.SKIPPED:
            return ProvisionResult(status=ProvisionStatus.SKIPPED, message=selection.message)
        if selection.status == SelectionStatus.INVALID:
            return ProvisionResult(status=ProvisionStatus.INVALID_SELECTION, message=selection.message)

        disk = selection.disk
        plan = plan_partition(disk, self.config.filesystem)
        logger.info(f"Plan for {disk.path}: {plan.action.value} ({plan.reason})")

        if plan.action == PartitionAction.UNSUPPORTED:
            return ProvisionResult(
                status=ProvisionStatus.UNSUPPORTED_FILESYSTEM,
                message=plan.reason,
                disk=disk.path,
                partition=plan.partition,
            )

        self.check_tools(plan)

        if plan.needs_confirmation and not confirm(confirmation_prompt(plan)):
            return ProvisionResult(
                status=ProvisionStatus.DECLINED,
                message=f"Setup of {disk.path} cancelled, nothing was changed",
                disk=disk.path,
            )

        partition = self.resolve_partition(plan)
        record, added = self.mount_and_persist(partition)
        layout = self.establish_layout()

        return ProvisionResult(
            status=ProvisionStatus.PROVISIONED,
            message=f"{partition.path} mounted at {mount_path}",
            disk=disk.path,
            partition=partition,
            record=record,
            record_added=added,
            layout=layout,
        )
