"""
Uvicorn server entrypoint for the NFS provisioner API.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from nfs_provisioner.cli.lib.config import load_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nfs-provisioner-api",
        description="Serve the NFS provisioner over HTTP",
    )
    parser.add_argument("--host", default=None, help="Listen address (default: api_host from config)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: api_port from config)")
    parser.add_argument("--log-level", default=None, help="Log level (default: log_level from config)")
    return parser


def main(argv: list[str] | None = None) -> int:
    cfg = load_config()
    args = build_parser().parse_args(argv)
    level = (args.log_level or cfg.log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # The export ledger lock and Export_Id counter live in this process
    uvicorn.run(
        "nfs_provisioner.api.main:app",
        host=args.host or cfg.api_host,
        port=args.port or cfg.api_port,
        log_level=level.lower(),
        workers=1,
    )
    return 0
