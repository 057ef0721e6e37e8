import logging
import os
from typing import List

from homeserver.storage.models import MountRecord

logger = logging.getLogger(__name__)

# Filesystems that rely on fsck at boot; others (xfs, btrfs...) check themselves
FSCK_FILESYSTEMS = ("ext2", "ext3", "ext4")

def fsck_pass_for(fstype: str) -> int:
    return 2 if fstype in FSCK_FILESYSTEMS else 0

def build_record(uuid: str, mount_path: str, fstype: str, options: str = "defaults,nofail") -> MountRecord:
    return MountRecord(
        uuid=uuid,
        mount_path=mount_path,
        fstype=fstype,
        options=options,
        pass_no=fsck_pass_for(fstype),
    )

def format_record(record: MountRecord) -> str:
    return f"UUID={record.uuid} {record.mount_path} {record.fstype} {record.options} {record.dump} {record.pass_no}\n"

def _entry_uuid(spec: str):
    if spec.startswith("UUID="):
        return spec.split("=", 1)[1].strip('"')
    if spec.startswith("/dev/disk/by-uuid/"):
        return spec[len("/dev/disk/by-uuid/"):]
    return None

def read_records(fstab_path: str) -> List[MountRecord]:
    """
    Parse the UUID-keyed entries of the mount table.
    Entries referencing devices by path or label are ignored.
    """
    records = []
    try:
        with open(fstab_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = line.split()
                # Expecting: device mount_path fstype options [dump [pass]]
                if len(parts) < 4:
                    continue
                uuid = _entry_uuid(parts[0])
                if not uuid:
                    continue
                records.append(MountRecord(
                    uuid=uuid,
                    mount_path=parts[1],
                    fstype=parts[2],
                    options=parts[3],
                    dump=int(parts[4]) if len(parts) > 4 and parts[4].isdigit() else 0,
                    pass_no=int(parts[5]) if len(parts) > 5 and parts[5].isdigit() else 0,
                ))
    except FileNotFoundError:
        pass
    return records

def has_uuid(fstab_path: str, uuid: str) -> bool:
    return any(r.uuid == uuid for r in read_records(fstab_path))

def ensure_record(record: MountRecord, fstab_path: str) -> bool:
    """
    Append the record unless an entry for the same UUID is already present.
    Returns True when a line was written.
    """
    if has_uuid(fstab_path, record.uuid):
        logger.info(f"UUID {record.uuid} already in {fstab_path}")
        return False

    prefix = ""
    if os.path.exists(fstab_path) and os.path.getsize(fstab_path) > 0:
        with open(fstab_path, "rb") as f:
            f.seek(-1, os.SEEK_END)
            if f.read(1) != b"\n":
                prefix = "\n"

    with open(fstab_path, "a") as f:
        f.write(prefix + format_record(record))
    logger.info(f"Added UUID {record.uuid} -> {record.mount_path} to {fstab_path}")
    return True
