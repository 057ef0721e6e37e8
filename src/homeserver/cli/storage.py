import os

import click

from homeserver.cli.utils import error, format_size, get_config, info, require_root, success, warn

@click.group()
@click.pass_context
def storage(ctx):
    """Secondary storage commands"""
    pass


def _print_disks(disks):
    for disk in disks:
        parts = disk.partitions
        detail = f"{len(parts)} partition(s)" if parts else "no partitions"
        model = f" {disk.model}" if disk.model else ""
        click.echo(f"  {disk.name:<12} {format_size(disk.size):>8}{model} ({detail})")
        for part in parts:
            click.echo(f"    {part.name:<10} {format_size(part.size):>8} {part.fstype or 'no filesystem'}")


def _print_manual_steps(config):
    from homeserver.storage.mounts import manual_mount_instructions

    info("To set up the storage disk manually:")
    for step in manual_mount_instructions(config.mount_path, config.filesystem):
        click.echo(f"  {step}")


def _choose_disk(candidates):
    click.echo("")
    info("Available disks:")
    _print_disks(candidates)
    click.echo("")
    return click.prompt("Disk to use for storage (e.g. sdb), or 'skip'", default="skip", show_default=True)


def _confirm(message):
    return click.confirm(click.style(message, fg='yellow'), default=False)


def _report_layout(layout):
    if layout is None:
        return
    for path in layout.created:
        info(f"Created directory: {path}")
    if layout.owned:
        success(f"Ownership set to {layout.owner}")
    if layout.legacy_link_created:
        success(f"Linked {layout.legacy_link} -> {os.path.join(layout.mount_path, 'media')}")
    success(f"Storage layout ready at {layout.mount_path}")


@storage.command(name='candidates')
def list_candidates():
    """List disks that can be used as secondary storage."""
    from homeserver.storage.devices import discover_candidates

    candidates = discover_candidates()
    if not candidates:
        warn("No secondary disk found")
        return
    _print_disks(candidates)


@storage.command()
@click.pass_context
def provision(ctx):
    """Detect, format and mount the secondary storage disk."""
    from homeserver.storage.manager import StorageProvisioner
    from homeserver.storage.models import ProvisionStatus
    from homeserver.storage.mounts import StorageError

    require_root()
    config = get_config(ctx)
    info(f"Setting up secondary storage at {config.mount_path}...")

    provisioner = StorageProvisioner(config)
    try:
        result = provisioner.provision(choose=_choose_disk, confirm=_confirm, notify=error)
    except StorageError as e:
        error(str(e))
        _print_manual_steps(config)
        ctx.exit(1)
        return

    if result.status == ProvisionStatus.PROVISIONED:
        success(result.message)
        if result.record_added:
            success(f"Added UUID={result.record.uuid} to {config.fstab_path}")
        else:
            info(f"UUID={result.record.uuid} already present in {config.fstab_path}")
        _report_layout(result.layout)
    elif result.status == ProvisionStatus.ALREADY_MOUNTED:
        success(result.message)
        _report_layout(result.layout)
    elif result.status == ProvisionStatus.NO_CANDIDATES:
        warn(result.message)
        _print_manual_steps(config)
    elif result.status in (ProvisionStatus.SKIPPED, ProvisionStatus.DECLINED):
        warn(result.message)
        _print_manual_steps(config)
    else:
        error(result.message)
        _print_manual_steps(config)


@storage.command()
@click.pass_context
def layout(ctx):
    """Create the storage directory layout on an already mounted disk."""
    from homeserver.storage.manager import StorageProvisioner
    from homeserver.storage.mounts import StorageError

    require_root()
    config = get_config(ctx)
    provisioner = StorageProvisioner(config)
    if not provisioner.check_existing_mount():
        error(f"{config.mount_path} is not mounted")
        _print_manual_steps(config)
        ctx.exit(1)
        return

    try:
        result = provisioner.establish_layout()
    except StorageError as e:
        error(str(e))
        ctx.exit(1)
        return
    _report_layout(result)


@storage.command()
@click.pass_context
def status(ctx):
    """Check whether the storage disk is mounted."""
    from homeserver.hwosinfo.hw import get_disk_usage, get_mount_device, is_mounted
    from homeserver.storage.fstab import read_records

    config = get_config(ctx)
    info(f"Checking storage mount at {config.mount_path}...")

    if is_mounted(config.mount_path):
        usage = get_disk_usage(config.mount_path)
        success(f"{get_mount_device(config.mount_path)} is mounted at {config.mount_path}")
        click.echo(f"  {format_size(usage['used'])} used of {format_size(usage['total'])} ({usage['percentage']}%)")
    else:
        warn(f"Storage is NOT mounted at {config.mount_path}")
        warn("Please mount your storage disk before running services that require it")

    records = [r for r in read_records(config.fstab_path) if r.mount_path == config.mount_path]
    if records:
        success(f"{config.fstab_path} has an entry for {config.mount_path} (UUID={records[0].uuid})")
    else:
        warn(f"{config.fstab_path} has no entry for {config.mount_path}")

    legacy = config.legacy_media_path
    if os.path.islink(legacy):
        info(f"{legacy} -> {os.readlink(legacy)}")
    elif os.path.exists(legacy):
        info(f"{legacy} is a regular directory")
    else:
        warn(f"{legacy} does not exist")


@storage.command()
@click.option('--install', 'do_install', is_flag=True, help='Install missing packages.')
@click.pass_context
def tools(ctx, do_install):
    """Check the tools needed to partition and format disks."""
    from homeserver.pkgs.manager import get_package_manager, install_hint, missing_storage_tools

    config = get_config(ctx)
    missing = missing_storage_tools(config.filesystem, config.distro, partition=True)
    if not missing:
        success("All storage tools are installed")
        return

    warn(f"Missing packages: {', '.join(missing)}")
    if not do_install:
        info(f"Install them with: {install_hint(missing, config.distro)}")
        return

    require_root()
    if config.distro is None:
        error("Unsupported distribution, install the packages manually")
        ctx.exit(1)
        return
    get_package_manager(config.distro).install(missing)
    success(f"Installed {', '.join(missing)}")
