from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from excelflow.contracts import HTTP_METHODS
from excelflow.errors import RunClientError
from excelflow.orchestration.registry import EndpointRegistry
from excelflow.runtime.endpoint_store import (
    YamlEndpointStore,
    default_endpoint_definitions,
    export_definitions,
    import_definitions,
    merge_definitions,
)


def _resolve_endpoints_path() -> Path:
    return Path(os.environ.get("EXCELFLOW_ENDPOINTS", "endpoints.yaml"))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the endpoint table.")
    parser.add_argument(
        "--endpoints",
        type=Path,
        default=_resolve_endpoints_path(),
        help="Endpoint table YAML (defaults to $EXCELFLOW_ENDPOINTS or ./endpoints.yaml)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="Show the endpoint table")
    commands.add_parser("init", help="Add the reference service routes that are missing")

    add = commands.add_parser("add", help="Add an endpoint")
    add.add_argument("path")
    add.add_argument("method", choices=HTTP_METHODS)
    add.add_argument("description")

    remove = commands.add_parser("remove", help="Remove an endpoint")
    remove.add_argument("path")
    remove.add_argument("method", choices=HTTP_METHODS)

    export = commands.add_parser("export", help="Write the table as JSON")
    export.add_argument("output", type=Path)

    import_ = commands.add_parser("import", help="Merge a JSON table into the current one")
    import_.add_argument("source", type=Path)
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args()
    store = YamlEndpointStore(args.endpoints)
    registry = EndpointRegistry(store=store)

    try:
        if args.command == "list":
            for definition in registry.definitions():
                print(f"{definition.method:<6} {definition.path_template:<40} {definition.description}")
        elif args.command == "init":
            store.save(merge_definitions(store.load(), default_endpoint_definitions()))
            print(f"Endpoint table written to {store.path}")
        elif args.command == "add":
            registry.add(args.path, args.method, args.description)
        elif args.command == "remove":
            if not registry.remove(args.path, args.method):
                print(f"No endpoint {args.method} {args.path}")
        elif args.command == "export":
            print(f"Exported to {export_definitions(registry.definitions(), args.output)}")
        elif args.command == "import":
            store.save(merge_definitions(store.load(), import_definitions(args.source)))
    except RunClientError as exc:
        raise SystemExit(f"{exc.title}: {exc}") from exc


if __name__ == "__main__":
    main()
