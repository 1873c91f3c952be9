"""
Pricing Step Engine - Main Orchestrator.
Coordinates the step store, evaluator, filter, reorder manager and
exchange codec for one product's pricing model.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd
from pydantic import ValidationError

from .config import Settings, get_settings
from .core.catalog import CoverageCatalog
from .core.evaluator import evaluate, format_premium
from .core.exceptions import (
    ImportIncompleteError,
    OrderingError,
    PersistenceError,
    StepNotFoundError,
    StepValidationError,
)
from .core.filters import filter_steps
from .core.models import (
    ALL_STATES,
    Coverage,
    FactorStep,
    Operand,
    OperandStep,
    RestrictedStates,
    RoundingMode,
    UnrestrictedStates,
    ValueType,
    parse_decimal,
    states_from_codes,
)
from .core.ordering import MoveDirection, ReorderManager, StepSequence
from .exchange.codec import ParsedRow, build_export_grid, parse_grid, plan_import
from .exchange.workbook import DocumentFormat, read_document, write_document
from .reporting.worksheet import WorksheetFormatter
from .storage.base import StepStore
from .storage.documents import encode_fields

logger = logging.getLogger(__name__)

AnyStep = FactorStep | OperandStep

_IMMUTABLE_FIELDS = frozenset({"id", "order", "step_type"})


@dataclass
class ImportReport:
    """Outcome of an import batch."""

    created: list[AnyStep] = field(default_factory=list)
    skipped: list[ParsedRow] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def factor_count(self) -> int:
        return sum(1 for s in self.created if isinstance(s, FactorStep))

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def _validation_messages(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


def _as_scope(states: Any) -> UnrestrictedStates | RestrictedStates:
    if isinstance(states, (UnrestrictedStates, RestrictedStates)):
        return states
    try:
        return states_from_codes(states)
    except ValidationError as exc:
        raise StepValidationError(_validation_messages(exc)) from None


def _build_step(
    model: type[AnyStep], data: dict[str, Any], details: dict[str, Any] | None = None
) -> AnyStep:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise StepValidationError(_validation_messages(exc), details) from None


class PricingEngine:
    """
    Main orchestrator for a product's pricing steps.

    Holds the loaded step sequence, evaluates scenario premiums, and
    routes every create, update, delete, reorder, export and import
    through the step store. Each committed mutation claims the store's
    collection version; a mutation made from a stale load is rejected.
    """

    def __init__(
        self,
        store: StepStore,
        product_id: str,
        product_name: str = "",
        coverages: Iterable[Coverage] = (),
        upstream_codes: Iterable[str] = (),
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the Pricing Engine.

        Args:
            store: Persistence for the product's steps
            product_id: Product whose steps are managed
            product_name: Display name used in exports and reports
            coverages: Coverages offered by the product
            upstream_codes: Reference codes offered for factor selection
            settings: Engine settings (defaults to environment settings)
        """
        self.store = store
        self.product_id = product_id
        self.product_name = product_name
        self.catalog = CoverageCatalog(coverages)
        self.upstream_codes = list(upstream_codes)
        self.settings = settings or get_settings()
        self._sequence = StepSequence()
        self._reorder = ReorderManager(store, product_id, self._sequence)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    @property
    def sequence(self) -> StepSequence:
        return self._sequence

    @property
    def steps(self) -> tuple[AnyStep, ...]:
        return self._sequence.steps

    @property
    def version(self) -> int:
        return self._sequence.version

    @property
    def coverages(self) -> list[Coverage]:
        return list(self.catalog)

    def load(self) -> tuple[AnyStep, ...]:
        """Read the product's steps and collection version from the store."""
        steps = self.store.list_steps(self.product_id)
        version = self.store.get_version(self.product_id)
        self._sequence = StepSequence(steps, version)
        self._reorder = ReorderManager(self.store, self.product_id, self._sequence)

        if not self._sequence.is_dense() and self.settings.repair_order_on_load:
            self._repair_order()

        logger.info(
            "Loaded %d steps for product %s (version %d)",
            len(self._sequence),
            self.product_id,
            self._sequence.version,
        )
        return self.steps

    def _repair_order(self) -> None:
        changed = self._sequence.renumbered()
        logger.warning(
            "Renumbering %d steps of product %s to restore a contiguous order",
            len(changed),
            self.product_id,
        )
        self._claim()
        for step in changed:
            self.store.update_step(self.product_id, step.id, {"order": step.order})
            self._sequence.apply([step])

    def _claim(self) -> None:
        if self._sequence.diverged:
            raise OrderingError("Sequence diverged from storage; reload before editing")
        self._sequence.version = self.store.bump_version(
            self.product_id, self._sequence.version
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def view(
        self, coverage: str | None = None, states: Iterable[str] | None = None
    ) -> tuple[AnyStep, ...]:
        """Steps to display for a coverage/jurisdiction scenario."""
        return filter_steps(self.steps, coverage, states, self.catalog.names or None)

    def premium(
        self, coverage: str | None = None, states: Iterable[str] | None = None
    ) -> Decimal | None:
        """Premium for a scenario; None when no factor step applies."""
        return evaluate(self.view(coverage, states))

    def premium_display(
        self, coverage: str | None = None, states: Iterable[str] | None = None
    ) -> str:
        return format_premium(self.premium(coverage, states))

    def worksheet(
        self, coverage: str | None = None, states: Iterable[str] | None = None
    ) -> WorksheetFormatter:
        states = list(states or [])
        return WorksheetFormatter(
            self.view(coverage, states),
            product_name=self.product_name,
            coverage=coverage,
            states=states,
        )

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------
    def add_step(self, step: AnyStep) -> AnyStep:
        """
        Append a step to the end of the sequence.

        Raises:
            StepValidationError: Required fields are missing
            PersistenceError: The write failed; the sequence is unchanged
        """
        errors = step.validation_errors()
        if errors:
            raise StepValidationError(errors)

        step = step.model_copy(update={"id": None, "order": self._sequence.next_order})
        self._claim()
        try:
            step_id = self.store.add_step(self.product_id, step)
        except PersistenceError:
            logger.error("Failed to add step to product %s", self.product_id)
            raise

        stored = step.model_copy(update={"id": step_id})
        self._sequence.append(stored)
        logger.info("Added %s step %s at order %d", stored.step_type, step_id, stored.order)
        return stored

    def add_factor(
        self,
        step_name: str,
        coverages: Iterable[str],
        value: Any = None,
        states: Any = None,
        rounding: RoundingMode | str = RoundingMode.NONE,
        value_type: ValueType | str = ValueType.USER_INPUT,
        table: str | None = None,
        upstream_code: str | None = None,
    ) -> FactorStep:
        """
        Append a factor step; `states` of None means all jurisdictions.

        When the engine was given upstream codes, `upstream_code` must be
        one of them.
        """
        if upstream_code and self.upstream_codes and upstream_code not in self.upstream_codes:
            raise StepValidationError([f"Unknown upstream code: {upstream_code}"])
        step = _build_step(
            FactorStep,
            {
                "step_name": step_name,
                "coverages": list(coverages),
                "value": None if value is None else parse_decimal(value),
                "states": _as_scope(states),
                "rounding": RoundingMode.parse(rounding),
                "value_type": value_type,
                "table": table or None,
                "upstream_code": upstream_code or None,
            },
        )
        return self.add_step(step)

    def add_operand(self, symbol: Operand | str, states: Any = None) -> OperandStep:
        """Append an operand step; operands default to all jurisdictions."""
        if not symbol:
            raise StepValidationError(["Operand is required"])
        try:
            operand = Operand(symbol)
        except ValueError:
            raise StepValidationError([f"Unknown operand: {symbol}"]) from None
        scope = ALL_STATES if states is None else _as_scope(states)
        return self.add_step(_build_step(OperandStep, {"operand": operand, "states": scope}))

    def update_step(self, step_id: str, **changes: Any) -> AnyStep:
        """
        Edit fields of a step in place.

        Order changes go through move_step; ids and step types are fixed.
        """
        forbidden = _IMMUTABLE_FIELDS.intersection(changes)
        if forbidden:
            raise StepValidationError([f"Field cannot be edited: {name}" for name in sorted(forbidden)])
        if "states" in changes:
            changes["states"] = _as_scope(changes["states"])

        current = self._sequence.get(step_id)
        unknown = set(changes) - set(type(current).model_fields)
        if unknown:
            raise StepValidationError([f"Unknown field: {name}" for name in sorted(unknown)])
        data = {**dict(current), **changes}
        updated = _build_step(type(current), data, {"step_id": step_id})
        errors = updated.validation_errors()
        if errors:
            raise StepValidationError(errors, {"step_id": step_id})

        self._claim()
        try:
            self.store.update_step(self.product_id, step_id, encode_fields(updated, *changes))
        except PersistenceError:
            logger.error("Failed to update step %s", step_id)
            raise

        self._sequence.replace(updated)
        logger.info("Updated step %s (%s)", step_id, ", ".join(sorted(changes)))
        return updated

    def update_value(self, step_id: str, value: Any) -> AnyStep:
        """Inline value edit; unparsable input is stored as 0."""
        return self.update_step(step_id, value=parse_decimal(value))

    def update_states(self, step_id: str, states: Any) -> AnyStep:
        return self.update_step(step_id, states=_as_scope(states))

    def delete_step(self, step_id: str) -> None:
        """
        Permanently delete a step and close the gap in the order values.

        Each renumbered step is applied in memory only after its write
        succeeds, so a failure leaves memory matching storage.
        """
        self._sequence.get(step_id)
        self._claim()
        try:
            self.store.delete_step(self.product_id, step_id)
        except PersistenceError:
            logger.error("Failed to delete step %s", step_id)
            raise

        tail = self._sequence.remove(step_id)
        for position, step in enumerate(tail):
            try:
                self.store.update_step(self.product_id, step.id, {"order": step.order})
            except (PersistenceError, StepNotFoundError) as exc:
                exc.details["renumbered"] = position
                logger.error(
                    "Deleted step %s but renumbering stopped after %d of %d steps",
                    step_id,
                    position,
                    len(tail),
                )
                raise
            self._sequence.apply([step])
        logger.info("Deleted step %s (%d steps renumbered)", step_id, len(tail))

    # ------------------------------------------------------------------
    # Reorder
    # ------------------------------------------------------------------
    def move_step(
        self,
        index: int,
        direction: MoveDirection | str,
        base_version: int | None = None,
    ) -> bool:
        """Move the step at `index` one slot up or down."""
        return self._reorder.move(index, direction, base_version)

    def move_step_by_id(
        self,
        step_id: str,
        direction: MoveDirection | str,
        base_version: int | None = None,
    ) -> bool:
        return self.move_step(self._sequence.index_of(step_id), direction, base_version)

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------
    def export_grid(self, generated_at: datetime | None = None) -> pd.DataFrame:
        return build_export_grid(
            self.steps,
            self.product_name,
            generated_at=generated_at,
            title=self.settings.export_title,
        )

    def export_document(
        self,
        fmt: DocumentFormat | str = DocumentFormat.XLSX,
        generated_at: datetime | None = None,
    ) -> bytes:
        """Serialize the full step sequence as an XLSX or CSV document."""
        return write_document(
            self.export_grid(generated_at),
            fmt,
            sheet_name=self.settings.export_sheet_name,
        )

    def import_grid(self, grid: pd.DataFrame) -> ImportReport:
        """
        Append the new steps of an exchange grid.

        Raises:
            ImportRejectedError: Unknown coverages or jurisdictions; nothing written
            StepValidationError: Incomplete rows; nothing written
            ImportIncompleteError: A write failed partway; the steps that
                were written are already part of the sequence
        """
        rows = parse_grid(grid)
        plan = plan_import(rows, self.steps, self.catalog, start_order=self._sequence.next_order)
        if not plan.writes:
            logger.info("Import found no new steps (%d duplicates)", len(plan.skipped))
            return ImportReport(skipped=plan.skipped)

        self._claim()
        try:
            created = plan.apply(self.store, self.product_id, atomic=self.settings.import_atomic)
        except ImportIncompleteError as exc:
            for step in exc.applied:
                self._sequence.append(step)
            raise

        for step in created:
            self._sequence.append(step)
        report = ImportReport(created=created, skipped=plan.skipped)
        logger.info(
            "Imported %d steps (%d factors), skipped %d duplicates",
            report.created_count,
            report.factor_count,
            report.skipped_count,
        )
        return report

    def import_document(
        self,
        source: bytes | str | Path | BinaryIO,
        fmt: DocumentFormat | str | None = None,
    ) -> ImportReport:
        """Read an XLSX or CSV document and import its steps."""
        return self.import_grid(read_document(source, fmt))


# Convenience function for quick evaluations
def evaluate_premium(
    steps: Iterable[AnyStep],
    coverage: str | None = None,
    states: Iterable[str] | None = None,
    product_coverages: Iterable[str] | None = None,
) -> Decimal | None:
    """
    Evaluate the premium of a step sequence for a scenario.

    Args:
        steps: Ordered step sequence
        coverage: Coverage to scope to, if any
        states: Jurisdictions to scope to, if any
        product_coverages: Coverage names the product offers, if known

    Returns:
        Premium rounded to two decimals, or None when no factor applies
    """
    offered = None if product_coverages is None else frozenset(product_coverages)
    return evaluate(filter_steps(steps, coverage, states, offered))
