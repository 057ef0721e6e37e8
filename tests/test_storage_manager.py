import os
from unittest.mock import Mock, patch

import pytest

from homeserver.config.settings import Config
from homeserver.pkgs.manager import missing_storage_tools
from homeserver.storage.manager import StorageProvisioner
from homeserver.storage.models import BlockDevice, ProvisionStatus
from homeserver.storage.mounts import StorageError


def _disk(name, partitions=None):
    return BlockDevice(name=name, path=f"/dev/{name}", size=4000787030016, type="disk", children=partitions or [])

def _part(name, fstype=None, size=4000785948160):
    return BlockDevice(name=name, path=f"/dev/{name}", size=size, type="part", fstype=fstype)


@pytest.fixture
def config(tmp_path):
    (tmp_path / "fstab").write_text("UUID=1111-2222 / ext4 errors=remount-ro 0 1\n")
    return Config(
        mount_path=str(tmp_path / "storage"),
        legacy_media_path=str(tmp_path / "media"),
        fstab_path=str(tmp_path / "fstab"),
    )


@pytest.fixture
def system():
    """Patch every call that would touch real devices."""
    names = [
        "is_mounted",
        "discover_candidates",
        "is_block_device",
        "missing_storage_tools",
        "create_partition",
        "wait_for_block_device",
        "format_partition",
        "mount_partition",
        "get_uuid",
    ]
    patchers = {name: patch(f"homeserver.storage.manager.{name}") for name in names}
    mocks = {name: p.start() for name, p in patchers.items()}
    mocks["is_mounted"].return_value = False
    mocks["is_block_device"].return_value = True
    mocks["missing_storage_tools"].return_value = []
    mocks["get_uuid"].return_value = "abcd-1234"
    yield Mock(**mocks)
    for p in patchers.values():
        p.stop()


def test_already_mounted_short_circuits(config, system):
    system.is_mounted.return_value = True
    choose = Mock()

    result = StorageProvisioner(config).provision(choose=choose, confirm=Mock())

    assert result.status == ProvisionStatus.ALREADY_MOUNTED
    assert os.path.isdir(os.path.join(config.mount_path, "media", "movies"))
    system.discover_candidates.assert_not_called()
    system.create_partition.assert_not_called()
    system.format_partition.assert_not_called()
    system.mount_partition.assert_not_called()
    choose.assert_not_called()


def test_no_candidates(config, system):
    system.discover_candidates.return_value = []
    choose = Mock()

    result = StorageProvisioner(config).provision(choose=choose, confirm=Mock())

    assert result.status == ProvisionStatus.NO_CANDIDATES
    assert result.message == "No secondary disk found"
    assert result.layout is None
    choose.assert_not_called()
    assert not os.path.exists(config.mount_path)


def test_skip(config, system):
    system.discover_candidates.return_value = [_disk("sdb")]

    result = StorageProvisioner(config).provision(choose=Mock(return_value="skip"), confirm=Mock())

    assert result.status == ProvisionStatus.SKIPPED
    system.create_partition.assert_not_called()


def test_invalid_selection_retries_then_aborts(config, system):
    system.discover_candidates.return_value = [_disk("sdb")]
    choose = Mock(return_value="sdz")
    notify = Mock()

    result = StorageProvisioner(config).provision(choose=choose, confirm=Mock(), notify=notify)

    assert result.status == ProvisionStatus.INVALID_SELECTION
    assert choose.call_count == config.selection_attempts
    assert notify.call_count == config.selection_attempts
    system.create_partition.assert_not_called()
    system.mount_partition.assert_not_called()


def test_invalid_then_valid_selection(config, system):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "ext4")])]
    choose = Mock(side_effect=["sdz", "sdb"])

    result = StorageProvisioner(config).provision(choose=choose, confirm=Mock(), notify=Mock())

    assert result.status == ProvisionStatus.PROVISIONED
    assert choose.call_count == 2


def test_selected_disk_missing_node(config, system):
    system.discover_candidates.return_value = [_disk("sdb")]
    system.is_block_device.return_value = False
    config.selection_attempts = 1

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock(), notify=Mock())

    assert result.status == ProvisionStatus.INVALID_SELECTION
    assert "/dev/sdb" in result.message


def test_decline_new_partition_leaves_disk_untouched(config, system):
    system.discover_candidates.return_value = [_disk("sdb")]
    confirm = Mock(return_value=False)

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=confirm)

    assert result.status == ProvisionStatus.DECLINED
    confirm.assert_called_once()
    system.create_partition.assert_not_called()
    system.format_partition.assert_not_called()
    system.mount_partition.assert_not_called()
    assert "abcd-1234" not in open(config.fstab_path).read()


def test_decline_format_existing_partition(config, system):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1")])]

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock(return_value=False))

    assert result.status == ProvisionStatus.DECLINED
    system.format_partition.assert_not_called()
    system.mount_partition.assert_not_called()


def test_new_disk_partitioned_formatted_and_mounted(config, system):
    system.discover_candidates.return_value = [_disk("sdb")]

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock(return_value=True))

    assert result.status == ProvisionStatus.PROVISIONED
    system.create_partition.assert_called_once_with("/dev/sdb", "ext4")
    system.format_partition.assert_called_once_with("/dev/sdb1", "ext4")
    system.mount_partition.assert_called_once_with("/dev/sdb1", config.mount_path, "ext4")
    assert result.partition.path == "/dev/sdb1"
    assert result.partition.uuid == "abcd-1234"
    assert result.record_added is True

    lines = open(config.fstab_path).read().splitlines()
    assert lines[-1] == f"UUID=abcd-1234 {config.mount_path} ext4 defaults,nofail 0 2"
    assert os.path.islink(config.legacy_media_path)


def test_new_nvme_disk_partition_path(config, system):
    system.discover_candidates.return_value = [_disk("nvme0n1")]

    result = StorageProvisioner(config).provision(choose=Mock(return_value="nvme0n1"), confirm=Mock(return_value=True))

    system.format_partition.assert_called_once_with("/dev/nvme0n1p1", "ext4")
    assert result.partition.path == "/dev/nvme0n1p1"


def test_existing_xfs_mounted_as_is(config, system):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "xfs")])]
    confirm = Mock()

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=confirm)

    assert result.status == ProvisionStatus.PROVISIONED
    confirm.assert_not_called()
    system.create_partition.assert_not_called()
    system.format_partition.assert_not_called()
    system.mount_partition.assert_called_once_with("/dev/sdb1", config.mount_path, "xfs")
    assert result.record.fstype == "xfs"
    assert f"UUID=abcd-1234 {config.mount_path} xfs defaults,nofail 0 0" in open(config.fstab_path).read()


def test_rerun_after_crash_does_not_duplicate_entry(config, system):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "ext4")])]
    provisioner = StorageProvisioner(config)

    first = provisioner.provision(choose=Mock(return_value="sdb"), confirm=Mock())
    second = provisioner.provision(choose=Mock(return_value="sdb"), confirm=Mock())

    assert first.record_added is True
    assert second.record_added is False
    assert open(config.fstab_path).read().count("UUID=abcd-1234") == 1


def test_unsupported_signature_is_reported(config, system):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "crypto_LUKS")])]

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock())

    assert result.status == ProvisionStatus.UNSUPPORTED_FILESYSTEM
    system.mount_partition.assert_not_called()


def test_mount_failure_skips_layout(config, system):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "ext4")])]
    system.mount_partition.side_effect = StorageError("mount failed")

    with pytest.raises(StorageError):
        StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock())

    assert not os.path.exists(os.path.join(config.mount_path, "media"))
    assert not os.path.lexists(config.legacy_media_path)


def test_fstab_write_failure_skips_layout(config, system, tmp_path):
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "ext4")])]
    config.fstab_path = str(tmp_path / "missing-dir" / "fstab")

    with pytest.raises(StorageError):
        StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock())

    assert not os.path.exists(os.path.join(config.mount_path, "media"))


def test_missing_tools_stop_before_confirmation(config, system):
    system.discover_candidates.return_value = [_disk("sdb")]
    system.missing_storage_tools.return_value = ["parted"]
    confirm = Mock()

    with pytest.raises(StorageError, match="parted"):
        StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=confirm)

    confirm.assert_not_called()
    system.create_partition.assert_not_called()


@patch('homeserver.pkgs.manager.shutil.which')
def test_existing_filesystem_mounts_without_parted(mock_which, config, system):
    mock_which.side_effect = lambda tool: None if tool in ("parted", "partprobe") else f"/usr/bin/{tool}"
    system.missing_storage_tools.side_effect = missing_storage_tools
    system.discover_candidates.return_value = [_disk("sdb", [_part("sdb1", "xfs")])]

    result = StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=Mock())

    assert result.status == ProvisionStatus.PROVISIONED
    system.mount_partition.assert_called_once_with("/dev/sdb1", config.mount_path, "xfs")


@patch('homeserver.pkgs.manager.shutil.which')
def test_new_disk_without_parted_stops_before_confirmation(mock_which, config, system):
    mock_which.side_effect = lambda tool: None if tool in ("parted", "partprobe") else f"/usr/bin/{tool}"
    system.missing_storage_tools.side_effect = missing_storage_tools
    system.discover_candidates.return_value = [_disk("sdb")]
    confirm = Mock()

    with pytest.raises(StorageError, match="parted"):
        StorageProvisioner(config).provision(choose=Mock(return_value="sdb"), confirm=confirm)

    confirm.assert_not_called()


def test_lsblk_failure_raises_storage_error(config, system):
    system.discover_candidates.side_effect = FileNotFoundError(2, "No such file or directory", "lsblk")
    choose = Mock()

    with pytest.raises(StorageError, match="Could not list block devices"):
        StorageProvisioner(config).provision(choose=choose, confirm=Mock())

    choose.assert_not_called()
    assert not os.path.exists(config.mount_path)
