from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path

from excelflow.api import execute_run
from excelflow.configuration import ClientConfig, load_client_config
from excelflow.lifecycle.results import display_metrics, humanize_key


def _resolve_config_path() -> Path | None:
    config_path = os.environ.get("EXCELFLOW_CONFIG")
    return Path(config_path) if config_path else None


def _load_config(path: Path | None) -> ClientConfig:
    if path is None:
        return ClientConfig()
    return load_client_config(path)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a processing job and collect its outputs.")
    parser.add_argument(
        "--template",
        dest="templates",
        action="append",
        default=[],
        help="Uploaded template name (repeatable)",
    )
    parser.add_argument("--vendor", default=None, help="Uploaded vendor file name")
    parser.add_argument(
        "--config",
        type=Path,
        default=_resolve_config_path(),
        help="Client YAML config (defaults to $EXCELFLOW_CONFIG)",
    )
    parser.add_argument(
        "--download-all",
        action="store_true",
        help="Download the archive of all outputs once the run completes",
    )
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args()
    config = _load_config(args.config)

    snapshot = asyncio.run(
        execute_run(
            config,
            template_ids=args.templates,
            vendor_id=args.vendor,
            download_all=args.download_all,
        )
    )

    if snapshot.status is not None:
        print(f"Run {snapshot.status.run_id}: {snapshot.status.status} ({snapshot.status.stage})")
    for artifact in snapshot.artifacts:
        print(f"  {artifact.origin_source} / {humanize_key(artifact.kind)}: {artifact.download_key}")
    if snapshot.result is not None:
        for label, value in display_metrics(snapshot.result.metrics):
            print(f"  {label}: {value}")


if __name__ == "__main__":
    main()
