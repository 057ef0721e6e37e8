import json

import click

@click.group()
@click.pass_context
def info(ctx):
    """Get OS information."""
    pass

@info.command(name='os')
def get_os():
    """Get OS information and the detected distribution family."""
    from homeserver.hwosinfo.os import UnsupportedDistributionError, detect_distro, get_os_info

    data = {"os": None, "distro": None}
    try:
        os_info = get_os_info()
        data["os"] = os_info.model_dump()
        data["distro"] = detect_distro(os_info).model_dump()
    except UnsupportedDistributionError as e:
        data["error"] = str(e)
    click.echo(json.dumps(data, indent=4))
