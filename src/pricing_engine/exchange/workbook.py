"""
Reading and writing exchange documents as XLSX or CSV.
"""

import io
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd
from openpyxl.utils import get_column_letter

from .codec import EXCHANGE_WIDTH, STEP_COLUMNS

# Coverage, Step Name, Table Name, Calculation, Rounding, Value, then states
COLUMN_WIDTHS: tuple[int, ...] = (20, 25, 15, 12, 12, 10)
STATE_COLUMN_WIDTH = 4

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIME = "text/csv"


class DocumentFormat(str, Enum):
    """Supported exchange document formats."""

    XLSX = "xlsx"
    CSV = "csv"

    @property
    def mime_type(self) -> str:
        return XLSX_MIME if self is DocumentFormat.XLSX else CSV_MIME


def detect_format(name: str | None, default: DocumentFormat = DocumentFormat.XLSX) -> DocumentFormat:
    """Infer the format from a file name's suffix."""
    if not name:
        return default
    suffix = Path(name).suffix.lower().lstrip(".")
    if suffix == "csv":
        return DocumentFormat.CSV
    if suffix in ("xlsx", "xlsm"):
        return DocumentFormat.XLSX
    return default


def write_xlsx(grid: pd.DataFrame, sheet_name: str = "Pricing") -> bytes:
    """Write a grid to a single-sheet workbook."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        worksheet = writer.sheets[sheet_name]
        for col in range(len(grid.columns)):
            width = COLUMN_WIDTHS[col] if col < len(COLUMN_WIDTHS) else STATE_COLUMN_WIDTH
            worksheet.column_dimensions[get_column_letter(col + 1)].width = width
    return buffer.getvalue()


def write_csv(grid: pd.DataFrame) -> str:
    return grid.to_csv(header=False, index=False)


def write_document(
    grid: pd.DataFrame,
    fmt: DocumentFormat | str = DocumentFormat.XLSX,
    sheet_name: str = "Pricing",
) -> bytes:
    """Serialize a grid in the requested format."""
    if DocumentFormat(fmt) is DocumentFormat.CSV:
        return write_csv(grid).encode("utf-8")
    return write_xlsx(grid, sheet_name=sheet_name)


def _source_name(source: Any) -> str | None:
    if isinstance(source, (str, Path)):
        return str(source)
    return getattr(source, "name", None)


def read_document(
    source: bytes | str | Path | BinaryIO,
    fmt: DocumentFormat | str | None = None,
) -> pd.DataFrame:
    """
    Read an exchange document into a positional grid.

    Only the first sheet of a workbook is read. CSV rows shorter than the
    exchange width are padded with blanks.

    Args:
        source: Raw bytes, a path, or a binary file object
        fmt: Document format; inferred from the file name when omitted
    """
    fmt = DocumentFormat(fmt) if fmt else detect_format(_source_name(source))
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    if fmt is DocumentFormat.CSV:
        return pd.read_csv(
            source,
            header=None,
            names=list(range(EXCHANGE_WIDTH)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )

    grid = pd.read_excel(source, sheet_name=0, header=None, engine="openpyxl")
    if len(grid.columns) < len(STEP_COLUMNS):
        grid = grid.reindex(columns=range(len(STEP_COLUMNS)))
    return grid
