#!/usr/bin/env python3
"""
Sample Pricing Script.
Demonstrates usage of the Pricing Step Engine.
"""

from pricing_engine import InMemoryStepStore, PricingEngine
from pricing_engine.config import configure_logging
from pricing_engine.samples import (
    PERSONAL_PROPERTY,
    SAMPLE_COVERAGES,
    SAMPLE_PRODUCT_ID,
    SAMPLE_PRODUCT_NAME,
    SAMPLE_UPSTREAM_CODES,
    seed_store,
)


def create_engine() -> PricingEngine:
    """Create an engine over the sample commercial property model."""
    engine = PricingEngine(
        seed_store(),
        SAMPLE_PRODUCT_ID,
        product_name=SAMPLE_PRODUCT_NAME,
        coverages=SAMPLE_COVERAGES,
        upstream_codes=SAMPLE_UPSTREAM_CODES,
    )
    engine.load()
    return engine


def main() -> None:
    """Run sample pricing scenarios."""
    configure_logging("WARNING")

    print("=" * 70)
    print("PRICING STEP ENGINE - Sample")
    print("=" * 70)
    print()

    engine = create_engine()

    # Full model
    print(engine.worksheet().to_text())
    print()

    # Scenario previews
    print("Scenarios:")
    for coverage, states in [
        (None, []),
        (PERSONAL_PROPERTY, []),
        ("Business Income", []),
        (None, ["TX"]),
    ]:
        label = engine.worksheet(coverage, states).scenario_label
        print(f"  {label:<45} {engine.premium_display(coverage, states):>12}")
    print()

    # Restrict the deductible credit to Texas
    deductible = engine.steps[-1]
    engine.update_states(deductible.id, ["TX"])
    print(f"Deductible credit limited to TX (version {engine.version})")
    print(f"  TX premium: {engine.premium_display(states=['TX'])}")
    print(f"  NY premium: {engine.premium_display(states=['NY'])}")
    print()

    # Reorder and restore
    engine.move_step(8, "down")
    print(f"Moved step 8 down -> premium {engine.premium_display()}")
    engine.move_step(9, "up")
    print(f"Moved it back     -> premium {engine.premium_display()}")
    print()

    # Export and import into a fresh product
    document = engine.export_document("xlsx")
    copy = PricingEngine(
        InMemoryStepStore(),
        "commercial-property-copy",
        product_name=f"{SAMPLE_PRODUCT_NAME} (copy)",
        coverages=SAMPLE_COVERAGES,
    )
    copy.load()
    report = copy.import_document(document, "xlsx")
    print(f"Exported {len(document):,} bytes; imported {report.created_count} steps "
          f"({report.factor_count} factors) into {copy.product_name}")

    again = copy.import_document(document, "xlsx")
    print(f"Re-import skipped {again.skipped_count} duplicate factors")
    print(f"Copy premium: {copy.premium_display()}")


if __name__ == "__main__":
    main()
