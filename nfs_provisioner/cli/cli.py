#!/usr/bin/env python3
"""
Main CLI entry point using Typer.
"""

import logging
import sys
from typing import Optional

import typer

from nfs_provisioner.cli.commands import info, volume
from nfs_provisioner.cli.lib.config import load_config

app = typer.Typer(
    name="nfs-provisioner",
    help="NFS volume provisioner control tool",
    add_completion=False,
)

# Add command groups
app.add_typer(volume.app, name="volume", help="Volume provisioning commands")
app.add_typer(info.app, name="info", help="Inspect provisioner settings")


@app.callback()
def setup_logging(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default: from config or INFO)"),
):
    """Configure logging for every command."""
    level = (log_level or load_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main() -> int:
    """Main entry point."""
    try:
        app()
        return 0
    except KeyboardInterrupt:
        typer.echo("\nOperation cancelled by user", err=True)
        return 130
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
