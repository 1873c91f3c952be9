"""
Shared fixtures for the pricing engine tests.
"""

from decimal import Decimal

import pytest

from pricing_engine import (
    Coverage,
    FactorStep,
    InMemoryStepStore,
    Operand,
    OperandStep,
    PricingEngine,
)
from pricing_engine.config import Settings
from pricing_engine.samples import (
    SAMPLE_COVERAGES,
    SAMPLE_PRODUCT_ID,
    SAMPLE_PRODUCT_NAME,
    seed_store,
)


@pytest.fixture
def settings() -> Settings:
    """Settings that ignore the environment and any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def coverages() -> list[Coverage]:
    return list(SAMPLE_COVERAGES)


@pytest.fixture
def store() -> InMemoryStepStore:
    """An in-memory store seeded with the sample model."""
    return seed_store()


@pytest.fixture
def engine(store: InMemoryStepStore, settings: Settings) -> PricingEngine:
    """A loaded engine over the sample model."""
    engine = PricingEngine(
        store,
        SAMPLE_PRODUCT_ID,
        product_name=SAMPLE_PRODUCT_NAME,
        coverages=SAMPLE_COVERAGES,
        settings=settings,
    )
    engine.load()
    return engine


@pytest.fixture
def empty_engine(settings: Settings) -> PricingEngine:
    """A loaded engine over a product with no steps."""
    engine = PricingEngine(
        InMemoryStepStore(),
        "empty-product",
        product_name="Empty",
        coverages=SAMPLE_COVERAGES,
        settings=settings,
    )
    engine.load()
    return engine


def factor(value: str, name: str = "Factor", **kwargs) -> FactorStep:
    """Build a factor step with sensible defaults."""
    kwargs.setdefault("coverages", ("Building Coverage",))
    return FactorStep(step_name=name, value=Decimal(value), **kwargs)


def operand(symbol: str, **kwargs) -> OperandStep:
    return OperandStep(operand=Operand(symbol), **kwargs)
