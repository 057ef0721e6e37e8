import logging
import os

import click

from homeserver.config.settings import Config, ConfigError, load_config
from homeserver.hwosinfo.os import UnsupportedDistributionError, detect_distro, get_os_info

logger = logging.getLogger(__name__)


def info(message):
    click.echo(f"{click.style('[INFO]', fg='blue')} {message}")


def success(message):
    click.echo(f"{click.style('[SUCCESS]', fg='green')} {message}")


def warn(message):
    click.echo(f"{click.style('[WARNING]', fg='yellow')} {message}")


def error(message):
    click.echo(f"{click.style('[ERROR]', fg='red')} {message}", err=True)


def format_size(size: int) -> str:
    value = float(size)
    for unit in ["B", "K", "M", "G", "T"]:
        if value < 1024:
            return f"{int(value)}B" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}P"


def require_root():
    if os.geteuid() != 0:
        error("This command must be run as root (or with sudo)")
        raise click.exceptions.Exit(1)


def get_config(ctx) -> Config:
    """Resolve the configuration once per invocation and cache it on the context."""
    obj = ctx.ensure_object(dict)
    if 'config' not in obj:
        try:
            distro = detect_distro(get_os_info())
        except UnsupportedDistributionError as e:
            logger.warning(f"{e}; package hints disabled")
            distro = None
        try:
            obj['config'] = load_config(obj.get('config_path'), distro=distro)
        except FileNotFoundError as e:
            raise click.FileError(obj.get('config_path'), hint=str(e))
        except ConfigError as e:
            raise click.BadParameter(str(e), param_hint="configuration")
    return obj['config']
