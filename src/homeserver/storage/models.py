from enum import Enum
from typing import List, Optional
from pydantic import BaseModel

class BlockDevice(BaseModel):
    name: str
    path: str
    size: int
    type: str  # disk, part, loop, rom, lvm, crypt...
    removable: bool = False
    fstype: Optional[str] = None
    uuid: Optional[str] = None
    mountpoint: Optional[str] = None
    parent: Optional[str] = None  # Kernel name of the parent device (lsblk PKNAME)
    model: Optional[str] = None
    children: List["BlockDevice"] = []

    @property
    def partitions(self) -> List["BlockDevice"]:
        return [c for c in self.children if c.type == "part"]

BlockDevice.model_rebuild()

class TargetPartition(BaseModel):
    path: str
    fstype: Optional[str] = None
    uuid: Optional[str] = None
    size: int = 0

class MountRecord(BaseModel):
    uuid: str
    mount_path: str
    fstype: str
    options: str = "defaults,nofail"
    dump: int = 0
    pass_no: int = 0

class PartitionAction(str, Enum):
    CREATE_AND_FORMAT = "create_and_format"  # Disk has no partitions
    FORMAT_EXISTING = "format_existing"  # Largest partition has no filesystem
    USE_EXISTING = "use_existing"
    UNSUPPORTED = "unsupported"  # Signature that cannot be mounted as a data filesystem

class PartitionPlan(BaseModel):
    disk: BlockDevice
    action: PartitionAction
    partition: TargetPartition
    reason: Optional[str] = None

    @property
    def needs_confirmation(self) -> bool:
        return self.action in (PartitionAction.CREATE_AND_FORMAT, PartitionAction.FORMAT_EXISTING)

class SelectionStatus(str, Enum):
    SELECTED = "selected"
    SKIPPED = "skipped"
    INVALID = "invalid"

class Selection(BaseModel):
    status: SelectionStatus
    disk: Optional[BlockDevice] = None
    message: Optional[str] = None

class LayoutResult(BaseModel):
    mount_path: str
    directories: List[str] = []
    created: List[str] = []
    owner: Optional[str] = None
    owned: List[str] = []
    legacy_link: Optional[str] = None
    legacy_link_created: bool = False

class ProvisionStatus(str, Enum):
    PROVISIONED = "provisioned"
    ALREADY_MOUNTED = "already_mounted"
    NO_CANDIDATES = "no_candidates"
    SKIPPED = "skipped"
    INVALID_SELECTION = "invalid_selection"
    DECLINED = "declined"
    UNSUPPORTED_FILESYSTEM = "unsupported_filesystem"

class ProvisionResult(BaseModel):
    status: ProvisionStatus
    message: str
    disk: Optional[str] = None
    partition: Optional[TargetPartition] = None
    record: Optional[MountRecord] = None
    record_added: bool = False
    layout: Optional[LayoutResult] = None
