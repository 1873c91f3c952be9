"""
Bulk export and import of pricing steps as tabular documents.
"""

from .codec import (
    DEFAULT_TITLE,
    EXCHANGE_WIDTH,
    HEADER_ROW,
    METADATA_ROWS,
    STEP_COLUMNS,
    ParsedRow,
    build_export_grid,
    export_rows,
    parse_grid,
    plan_import,
)
from .ledger import ImportPlan, PendingWrite
from .workbook import DocumentFormat, detect_format, read_document, write_document

__all__ = [
    # Codec
    "DEFAULT_TITLE",
    "EXCHANGE_WIDTH",
    "HEADER_ROW",
    "METADATA_ROWS",
    "STEP_COLUMNS",
    "ParsedRow",
    "build_export_grid",
    "export_rows",
    "parse_grid",
    "plan_import",
    # Ledger
    "ImportPlan",
    "PendingWrite",
    # Documents
    "DocumentFormat",
    "detect_format",
    "read_document",
    "write_document",
]
