"""
Pricing Worksheet Reporting Module.
Renders a (filtered) step sequence and its premium for display.
"""

import json
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from ..core.evaluator import TraceRow, evaluate, evaluate_trace, format_premium
from ..core.models import FactorStep, OperandStep, describe_states


class WorksheetFormatter:
    """
    Formats a step view and its premium for various output formats.
    """

    OPERAND_LABELS = {
        "+": "Add",
        "-": "Subtract",
        "*": "Multiply",
        "/": "Divide",
        "=": "Equals",
    }

    def __init__(
        self,
        steps: Sequence[FactorStep | OperandStep],
        product_name: str = "",
        coverage: str | None = None,
        states: Iterable[str] | None = None,
    ) -> None:
        self.steps = list(steps)
        self.product_name = product_name
        self.coverage = coverage
        self.states = list(states or [])
        self.premium: Decimal | None = evaluate(self.steps)
        self.trace: list[TraceRow] = evaluate_trace(self.steps)

    @property
    def scenario_label(self) -> str:
        coverage = self.coverage or "All Coverages"
        states = ", ".join(self.states) if self.states else "All States"
        return f"{coverage} / {states}"

    def rows(self) -> list[dict[str, Any]]:
        """One display row per step, in sequence order."""
        rows: list[dict[str, Any]] = []
        trace = iter(self.trace)
        for step in self.steps:
            if isinstance(step, FactorStep):
                entry = next(trace)
                rows.append(
                    {
                        "Order": step.order,
                        "Type": "factor",
                        "Coverages": ", ".join(step.coverages),
                        "Step": step.step_name,
                        "Table": step.table or "",
                        "Rounding": step.rounding.value,
                        "Value": step.value,
                        "States": describe_states(step.states),
                        "Running Total": entry.running_total,
                        "Impact": entry.impact,
                    }
                )
            else:
                rows.append(
                    {
                        "Order": step.order,
                        "Type": "operand",
                        "Coverages": "",
                        "Step": step.operand.value,
                        "Table": "",
                        "Rounding": "",
                        "Value": None,
                        "States": describe_states(step.states),
                        "Running Total": None,
                        "Impact": None,
                    }
                )
        return rows

    def to_text(self) -> str:
        """
        Format the worksheet as a plain text report.

        Returns:
            Formatted text report
        """
        lines: list[str] = []

        lines.append("=" * 70)
        lines.append("PRICING WORKSHEET")
        lines.append("=" * 70)
        if self.product_name:
            lines.append(f"Product: {self.product_name}")
        lines.append(f"Scenario: {self.scenario_label}")
        lines.append("")

        lines.append("-" * 70)
        totals = iter(self.trace)
        for step in self.steps:
            if isinstance(step, FactorStep):
                value = f"{step.value:,}" if step.value is not None else "-"
                running = next(totals).running_total
                lines.append(
                    f"{step.order:>3}  {step.step_name:<32} {value:>14}  "
                    f"{running:>14,}  [{describe_states(step.states)}]"
                )
            else:
                label = self.OPERAND_LABELS.get(step.operand.value, step.operand.value)
                lines.append(f"{step.order:>3}      {step.operand.value}  ({label})")
        lines.append("-" * 70)

        lines.append(f"Premium: {format_premium(self.premium)}")
        lines.append("=" * 70)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        def serialize_value(v: Any) -> Any:
            if isinstance(v, Decimal):
                return float(v)
            return v

        return {
            "product": self.product_name,
            "coverage": self.coverage,
            "states": self.states,
            "premium": format_premium(self.premium),
            "steps": [
                {k: serialize_value(v) for k, v in row.items()} for row in self.rows()
            ],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
