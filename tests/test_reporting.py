"""
Tests for the pricing worksheet formatter.
"""

import json
from decimal import Decimal

from conftest import factor, operand
from pricing_engine import RestrictedStates, WorksheetFormatter
from pricing_engine.samples import SAMPLE_PRODUCT_NAME, sample_steps


class TestWorksheetFormatter:
    """Tests for WorksheetFormatter."""

    def test_rows(self) -> None:
        steps = [
            factor("1.15", "Territory", order=0, states=RestrictedStates(codes=("TX",))),
            operand("*", order=1),
        ]
        rows = WorksheetFormatter(steps).rows()

        assert rows[0]["Step"] == "Territory"
        assert rows[0]["States"] == "TX"
        assert rows[1]["Type"] == "operand"
        assert rows[1]["Step"] == "*"
        assert rows[1]["States"] == "All"

    def test_text_report(self) -> None:
        text = WorksheetFormatter(sample_steps(), product_name=SAMPLE_PRODUCT_NAME).to_text()

        assert "PRICING WORKSHEET" in text
        assert f"Product: {SAMPLE_PRODUCT_NAME}" in text
        assert "Scenario: All Coverages / All States" in text
        assert "(Subtract)" in text
        assert "Premium: 4837.50" in text

    def test_undefined_premium(self) -> None:
        worksheet = WorksheetFormatter([operand("+")], coverage="Flood", states=["NY", "NJ"])
        assert worksheet.premium is None
        assert worksheet.scenario_label == "Flood / NY, NJ"
        assert "Premium: N/A" in worksheet.to_text()

    def test_json(self) -> None:
        data = json.loads(WorksheetFormatter(sample_steps()).to_json())

        assert data["premium"] == "4837.50"
        assert len(data["steps"]) == 13
        assert data["steps"][0]["Value"] == 0.5
        assert data["steps"][1]["Value"] is None

    def test_rows_carry_running_total(self) -> None:
        steps = [factor("10", order=0), operand("/", order=1), factor("0", order=2), factor("4", order=3)]
        rows = WorksheetFormatter(steps).rows()

        assert [r["Running Total"] for r in rows] == [
            Decimal("10.00"),
            None,
            Decimal("10.00"),
            Decimal("2.50"),
        ]
        assert rows[2]["Impact"] == 0
        assert rows[3]["Impact"] == Decimal("-7.50")

    def test_text_report_shows_running_total(self) -> None:
        text = WorksheetFormatter(sample_steps()).to_text()
        assert "5,000.00" in text
        assert "4,887.50" in text
