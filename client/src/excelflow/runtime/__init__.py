"""Runtime helpers: local storage for the endpoint table and downloads."""

from excelflow.runtime.downloads import (
    LocalDirectoryTarget,
    build_run_download_dir,
    resolve_download_root,
    safe_filename,
)
from excelflow.runtime.endpoint_store import (
    YamlEndpointStore,
    default_endpoint_definitions,
    export_definitions,
    import_definitions,
    merge_definitions,
)

__all__ = [
    "LocalDirectoryTarget",
    "build_run_download_dir",
    "resolve_download_root",
    "safe_filename",
    "YamlEndpointStore",
    "default_endpoint_definitions",
    "export_definitions",
    "import_definitions",
    "merge_definitions",
]
