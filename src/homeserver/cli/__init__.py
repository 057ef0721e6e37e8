import logging

import click

from homeserver.cli.info import info
from homeserver.cli.storage import storage

@click.group()
@click.option("--config", "config_path", help="Path to the configuration file.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx, config_path, verbose):
    """Home server provisioning CLI"""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

main.add_command(info)
main.add_command(storage)
