from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path

from excelflow.api import build_registry
from excelflow.configuration import ClientConfig, load_client_config
from excelflow.errors import RunClientError
from excelflow.lifecycle.staging import StagingClient
from excelflow.service.client import JobServiceClient


def _resolve_config_path() -> Path | None:
    config_path = os.environ.get("EXCELFLOW_CONFIG")
    return Path(config_path) if config_path else None


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="List or upload template and vendor files.")
    parser.add_argument("--config", type=Path, default=_resolve_config_path())
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List uploaded templates and vendor files")

    upload = commands.add_parser("upload", help="Upload files")
    upload.add_argument("--template", dest="templates", type=Path, action="append", default=[])
    upload.add_argument("--vendor", type=Path, default=None)
    return parser.parse_args()


async def _run(args: argparse.Namespace, config: ClientConfig) -> None:
    async with JobServiceClient.from_config(config, registry=build_registry(config)) as client:
        staging = StagingClient(client)
        if args.command == "list":
            templates, vendors = await asyncio.gather(staging.list_templates(), staging.list_vendors())
            print("Templates:", ", ".join(templates) or "(none)")
            print("Vendors:", ", ".join(vendors) or "(none)")
            return

        if not args.templates and args.vendor is None:
            raise SystemExit("Select template or vendor files to upload.")
        reports = []
        if args.templates:
            reports.append(await staging.upload_templates(args.templates))
        if args.vendor is not None:
            reports.append(await staging.upload_vendor(args.vendor))
        for report in reports:
            print(f"{report.kind}: {report.summary()}")
            for item in report.files:
                suffix = f" ({item.message})" if item.message else ""
                print(f"  {item.status:<7} {item.name}{suffix}")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args()
    config = load_client_config(args.config) if args.config else ClientConfig()
    try:
        asyncio.run(_run(args, config))
    except RunClientError as exc:
        raise SystemExit(f"{exc.title}: {exc}") from exc


if __name__ == "__main__":
    main()
