"""
Tabular exchange codec for pricing steps.

Export layout (one sheet):

    row 1  title
    row 2  Generated on: <timestamp>
    row 3  Product: <name>
    row 4  Total Steps: <factor count>
    row 5  (blank)
    row 6  Coverage | Step Name | Table Name | Calculation | Rounding | Value | AL .. WY
    row 7+ one row per factor step

Each factor row carries the symbol of the operand step that follows it,
so a factor/operand pair round-trips through a single row.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import pandas as pd

from ..core.catalog import CoverageCatalog
from ..core.exceptions import CoverageResolutionError, JurisdictionError, StepValidationError
from ..core.models import (
    JURISDICTIONS,
    OPERAND_SYMBOLS,
    FactorStep,
    Operand,
    OperandStep,
    RoundingMode,
    is_jurisdiction,
    parse_decimal,
    states_from_codes,
)
from .ledger import ImportPlan

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Pricing Model Export Report"

STEP_COLUMNS: tuple[str, ...] = (
    "Coverage",
    "Step Name",
    "Table Name",
    "Calculation",
    "Rounding",
    "Value",
)
HEADER_ROW: tuple[str, ...] = STEP_COLUMNS + JURISDICTIONS
EXCHANGE_WIDTH = len(HEADER_ROW)
METADATA_ROWS = 6

# Cell literals that mark a jurisdiction as applicable on import.
MEMBERSHIP_MARKERS = frozenset({"X", "YES"})

_COVERAGE, _STEP_NAME, _TABLE, _CALCULATION, _ROUNDING, _VALUE = range(len(STEP_COLUMNS))


# =============================================================================
# Export
# =============================================================================
def export_rows(steps: Sequence[FactorStep | OperandStep]) -> list[list[Any]]:
    """One row per factor step, carrying the operand that follows it."""
    rows: list[list[Any]] = []
    for i, step in enumerate(steps):
        if not isinstance(step, FactorStep):
            continue
        following = steps[i + 1] if i + 1 < len(steps) else None
        members = set(step.states.members())
        rows.append(
            [
                "; ".join(step.coverages),
                step.step_name,
                step.table or "",
                following.operand.value if isinstance(following, OperandStep) else "",
                step.rounding.value,
                step.value if step.value is not None else Decimal("0"),
                *("Yes" if code in members else "No" for code in JURISDICTIONS),
            ]
        )
    return rows


def build_export_grid(
    steps: Sequence[FactorStep | OperandStep],
    product_name: str,
    generated_at: datetime | None = None,
    title: str = DEFAULT_TITLE,
) -> pd.DataFrame:
    """
    Build the full export sheet as a grid of cells.

    Args:
        steps: Ordered step sequence
        product_name: Product shown in the metadata header
        generated_at: Generation timestamp (defaults to now, UTC)
        title: Title cell text

    Returns:
        DataFrame with positional columns 0..55 and no header
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    factor_count = sum(1 for s in steps if isinstance(s, FactorStep))

    metadata: list[list[Any]] = [
        [title],
        [f"Generated on: {generated_at.isoformat(timespec='seconds')}"],
        [f"Product: {product_name}"],
        [f"Total Steps: {factor_count}"],
        [],
        list(HEADER_ROW),
    ]
    rows = [row + [None] * (EXCHANGE_WIDTH - len(row)) for row in metadata]
    rows.extend(export_rows(steps))
    return pd.DataFrame(rows, columns=range(EXCHANGE_WIDTH), dtype=object)


# =============================================================================
# Import
# =============================================================================
@dataclass
class ParsedRow:
    """A data row of an exchange document, before coverage resolution."""

    row_number: int
    coverage_names: list[str]
    step_name: str
    table: str = ""
    rounding: RoundingMode = RoundingMode.NONE
    value: Decimal = Decimal("0")
    state_codes: list[str] = field(default_factory=list)
    operand: Operand | None = None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _state_columns(header: list[Any], width: int) -> list[tuple[int, str]]:
    labelled = [
        (col, _cell_text(header[col]).upper())
        for col in range(len(STEP_COLUMNS), width)
        if _cell_text(header[col])
    ]
    if labelled:
        return labelled
    # No header labels: assume the canonical jurisdiction order.
    return [
        (len(STEP_COLUMNS) + i, code)
        for i, code in enumerate(JURISDICTIONS)
        if len(STEP_COLUMNS) + i < width
    ]


def parse_grid(grid: pd.DataFrame) -> list[ParsedRow]:
    """
    Parse the data rows of an exchange sheet.

    The six reserved rows are skipped. Step columns are read by position;
    jurisdiction columns are identified by their header-row labels.
    Completely blank rows are ignored.
    """
    if len(grid.index) <= METADATA_ROWS:
        return []

    width = max(len(grid.columns), len(STEP_COLUMNS))
    records = [list(r) + [None] * (width - len(r)) for r in grid.itertuples(index=False)]
    state_columns = _state_columns(records[METADATA_ROWS - 1], width)

    parsed: list[ParsedRow] = []
    for offset, raw in enumerate(records[METADATA_ROWS:]):
        cells = [_cell_text(v) for v in raw]
        marked = [code for col, code in state_columns if cells[col].upper() in MEMBERSHIP_MARKERS]
        if not any(cells[: len(STEP_COLUMNS)]) and not marked:
            continue

        calculation = cells[_CALCULATION]
        parsed.append(
            ParsedRow(
                row_number=METADATA_ROWS + offset + 1,
                coverage_names=[t.strip() for t in cells[_COVERAGE].split(";") if t.strip()],
                step_name=cells[_STEP_NAME],
                table=cells[_TABLE],
                rounding=RoundingMode.parse(cells[_ROUNDING]),
                value=parse_decimal(raw[_VALUE]),
                state_codes=marked,
                operand=Operand(calculation) if calculation in OPERAND_SYMBOLS else None,
            )
        )
    return parsed


def _check_references(rows: Iterable[ParsedRow], catalog: CoverageCatalog) -> None:
    rows = list(rows)
    unresolved = catalog.unresolved(name for row in rows for name in row.coverage_names)
    if unresolved:
        raise CoverageResolutionError(unresolved)

    invalid: list[str] = []
    for row in rows:
        for code in row.state_codes:
            if not is_jurisdiction(code) and code not in invalid:
                invalid.append(code)
    if invalid:
        raise JurisdictionError(invalid)

    errors: list[str] = []
    for row in rows:
        if not row.step_name:
            errors.append(f"Row {row.row_number}: Step Name is required")
        if not row.coverage_names:
            errors.append(f"Row {row.row_number}: At least one coverage is required")
    if errors:
        raise StepValidationError(errors)


def plan_import(
    rows: list[ParsedRow],
    existing: Sequence[FactorStep | OperandStep],
    catalog: CoverageCatalog,
    start_order: int | None = None,
) -> ImportPlan:
    """
    Turn parsed rows into an ordered log of appends.

    The whole batch is checked before anything is planned: unresolved
    coverage names, unknown jurisdictions and incomplete rows each reject
    the batch, reporting every offending value at once. Rows whose
    coverage codes and step name match an existing factor are skipped
    along with their operand.

    Args:
        rows: Output of parse_grid
        existing: Steps currently in the sequence
        catalog: Coverages of the active product
        start_order: First order value to assign (defaults to len(existing))

    Returns:
        ImportPlan whose writes carry their final order values
    """
    _check_references(rows, catalog)

    existing_keys = {catalog.dedup_key(s) for s in existing if isinstance(s, FactorStep)}
    order = len(existing) if start_order is None else start_order
    steps: list[FactorStep | OperandStep] = []
    skipped: list[ParsedRow] = []

    for row in rows:
        factor = FactorStep(
            step_name=row.step_name,
            coverages=[catalog.lookup(name).name for name in row.coverage_names],
            table=row.table or None,
            rounding=row.rounding,
            value=row.value,
            states=states_from_codes(row.state_codes),
            order=order,
        )
        if catalog.dedup_key(factor) in existing_keys:
            logger.warning(
                "Skipping duplicate step %r (row %d)", row.step_name, row.row_number
            )
            skipped.append(row)
            continue

        steps.append(factor)
        order += 1
        if row.operand is not None:
            steps.append(OperandStep(operand=row.operand, order=order))
            order += 1

    return ImportPlan.from_steps(steps, skipped)
