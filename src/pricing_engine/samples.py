"""
Sample commercial property pricing model.

Premium = Base Rate x Building Value x Construction x Protection Class
          x Territory x Occupancy - Deductible Credit

With the values below: 0.50 x 10,000 x 1.0 x 0.85 x 1.15 x 1.0 - 50 = 4,837.50
"""

from decimal import Decimal

from .core.models import (
    Coverage,
    FactorStep,
    Operand,
    OperandStep,
    RoundingMode,
    ValueType,
)
from .storage.base import InMemoryStepStore

SAMPLE_PRODUCT_ID = "commercial-property"
SAMPLE_PRODUCT_NAME = "Commercial Property"

BUILDING = "Building Coverage"
PERSONAL_PROPERTY = "Business Personal Property"

SAMPLE_COVERAGES: list[Coverage] = [
    Coverage(id="cov-bldg", name=BUILDING, coverage_code="BLDG"),
    Coverage(id="cov-bpp", name=PERSONAL_PROPERTY, coverage_code="BPP"),
    Coverage(id="cov-bi", name="Business Income", coverage_code="BI"),
]

SAMPLE_UPSTREAM_CODES: list[str] = [
    "BASE_RATE",
    "BUILDING_VALUE",
    "CONSTRUCTION_TYPE",
    "PROTECTION_CLASS",
    "TERRITORY",
    "OCCUPANCY",
    "DEDUCTIBLE_CREDIT",
]


def _factor(
    name: str,
    value: str,
    table: str | None,
    upstream: str,
    rounding: RoundingMode = RoundingMode.TWO_DECIMALS,
    coverages: tuple[str, ...] = (BUILDING, PERSONAL_PROPERTY),
    value_type: ValueType = ValueType.TABLE,
) -> FactorStep:
    return FactorStep(
        step_name=name,
        coverages=coverages,
        value=Decimal(value),
        rounding=rounding,
        value_type=value_type,
        table=table,
        upstream_code=upstream,
    )


def sample_steps() -> list[FactorStep | OperandStep]:
    """The sample model in sequence order, with dense order values."""
    multiply = OperandStep(operand=Operand.MULTIPLY)
    steps: list[FactorStep | OperandStep] = [
        _factor("Base Rate per $100", "0.50", "BaseRates", "BASE_RATE"),
        multiply,
        _factor(
            "Building Value (per $100)",
            "10000",
            None,
            "BUILDING_VALUE",
            rounding=RoundingMode.WHOLE,
            value_type=ValueType.USER_INPUT,
        ),
        multiply,
        _factor(
            "Construction Type Factor",
            "1.0",
            "ConstructionType",
            "CONSTRUCTION_TYPE",
            coverages=(BUILDING,),
        ),
        multiply,
        _factor("Protection Class Factor", "0.85", "ProtectionClass", "PROTECTION_CLASS"),
        multiply,
        _factor("Territory Factor", "1.15", "Territory", "TERRITORY"),
        multiply,
        _factor("Occupancy Factor", "1.0", "Occupancy", "OCCUPANCY"),
        OperandStep(operand=Operand.SUBTRACT),
        _factor(
            "Deductible Credit",
            "50",
            "DeductibleCredits",
            "DEDUCTIBLE_CREDIT",
            rounding=RoundingMode.WHOLE,
        ),
    ]
    return [step.model_copy(update={"order": i}) for i, step in enumerate(steps)]


def seed_store(
    store: InMemoryStepStore | None = None, product_id: str = SAMPLE_PRODUCT_ID
) -> InMemoryStepStore:
    """Write the sample model into a store (a new in-memory one by default)."""
    store = store or InMemoryStepStore()
    for step in sample_steps():
        store.add_step(product_id, step)
    return store
