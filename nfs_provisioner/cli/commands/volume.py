"""
Volume provisioning commands.
"""

import json
from typing import List

import typer

from nfs_provisioner.cli.lib.config import load_config
from nfs_provisioner.cli.lib.provisioner import Provisioner, VolumeRequest
from nfs_provisioner.cli.lib.validators import parse_capacity, validate_name

app = typer.Typer(help="Volume provisioning commands")


@app.command()
def create(
    name: str = typer.Argument(..., help="Volume (PersistentVolume) name"),
    capacity: str = typer.Option(..., "--capacity", help="Capacity, e.g. 1Gi, 500M or plain bytes"),
    access_mode: List[str] = typer.Option(
        ["ReadWriteMany"], "--access-mode", help="Access mode, repeatable (default: ReadWriteMany)"
    ),
    reclaim_policy: str = typer.Option("Delete", "--reclaim-policy", help="Reclaim policy (default: Delete)"),
):
    """
    Provision a volume.

    Creates the backing directory, assigns it a supplemental group, exports it
    and prints the resulting PersistentVolume as JSON.
    """
    try:
        validate_name(name)
        capacity_bytes = parse_capacity(capacity)

        typer.echo(f"Provisioning volume: {name} ({capacity_bytes} bytes)", err=True)

        request = VolumeRequest(
            name=name,
            capacity_bytes=capacity_bytes,
            access_modes=list(access_mode),
            reclaim_policy=reclaim_policy,
        )
        provisioner = Provisioner.from_config(load_config())
        volume = provisioner.provision(request)

        typer.echo(f"  Exported {volume.server}:{volume.path} with gid {volume.gid}", err=True)
        typer.echo(json.dumps(volume.to_persistent_volume(request), indent=2))

    except Exception as e:
        typer.echo(f"Error provisioning volume: {e}", err=True)
        raise typer.Exit(1)
