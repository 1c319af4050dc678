"""
Commands showing what the provisioner resolves at startup.
"""

import os

import typer

from nfs_provisioner.cli.lib.config import load_config
from nfs_provisioner.cli.lib.gid_ranges import GidRangeResolver
from nfs_provisioner.cli.lib.kube import KubeClient
from nfs_provisioner.cli.lib.server import ServerResolver

app = typer.Typer(help="Inspect provisioner settings")


@app.command()
def ranges():
    """
    Show the supplemental group ranges gids are picked from.
    """
    try:
        cfg = load_config()
        client = KubeClient.from_config(cfg)
        namespace = os.environ.get(cfg.namespace_env, "")
        for rng in GidRangeResolver(client, cfg.annotations_file).resolve(namespace):
            typer.echo(f"{rng.min}-{rng.max}")

    except Exception as e:
        typer.echo(f"Error resolving ranges: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def server():
    """
    Show the NFS server address provisioned volumes will point at.
    """
    try:
        cfg = load_config()
        resolver = ServerResolver(
            KubeClient.from_config(cfg),
            pod_ip_env=cfg.pod_ip_env,
            service_env=cfg.service_env,
            namespace_env=cfg.namespace_env,
        )
        typer.echo(resolver.resolve())

    except Exception as e:
        typer.echo(f"Error resolving server: {e}", err=True)
        raise typer.Exit(1)
