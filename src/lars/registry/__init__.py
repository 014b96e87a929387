"""Service registry: declared services and their persistence."""

from lars.registry.store import ServiceRegistry
from lars.registry.transfer import (
    ExportDocument,
    ImportResult,
    export_document,
    export_json,
    import_document,
    import_file,
)

__all__ = [
    "ExportDocument",
    "ImportResult",
    "ServiceRegistry",
    "export_document",
    "export_json",
    "import_document",
    "import_file",
]
