"""
Pricing Step Engine.

Evaluation, scenario filtering, ordering and spreadsheet exchange for
the ordered factor/operand steps that make up an insurance product's
pricing model.
"""

from .core.catalog import CoverageCatalog
from .core.evaluator import (
    UNDEFINED_PREMIUM,
    TraceRow,
    evaluate,
    evaluate_trace,
    format_premium,
)
from .core.exceptions import (
    CoverageResolutionError,
    ImportIncompleteError,
    ImportRejectedError,
    JurisdictionError,
    OrderingError,
    PersistenceError,
    PricingError,
    StaleSequenceError,
    StepNotFoundError,
    StepValidationError,
)
from .core.filters import filter_steps
from .core.models import (
    ALL_STATES,
    JURISDICTIONS,
    Coverage,
    FactorStep,
    Operand,
    OperandStep,
    RestrictedStates,
    RoundingMode,
    UnrestrictedStates,
    ValueType,
)
from .core.ordering import MoveDirection, StepSequence
from .engine import ImportReport, PricingEngine, evaluate_premium
from .exchange.workbook import DocumentFormat
from .reporting.worksheet import WorksheetFormatter
from .storage.base import InMemoryStepStore, StepStore

__version__ = "0.1.0"

__all__ = [
    # Main Engine
    "PricingEngine",
    "ImportReport",
    "evaluate_premium",
    # Models
    "ALL_STATES",
    "JURISDICTIONS",
    "Coverage",
    "CoverageCatalog",
    "FactorStep",
    "Operand",
    "OperandStep",
    "RestrictedStates",
    "RoundingMode",
    "UnrestrictedStates",
    "ValueType",
    # Evaluation
    "UNDEFINED_PREMIUM",
    "TraceRow",
    "evaluate",
    "evaluate_trace",
    "format_premium",
    "filter_steps",
    # Ordering
    "MoveDirection",
    "StepSequence",
    # Exchange
    "DocumentFormat",
    # Reporting
    "WorksheetFormatter",
    # Storage
    "InMemoryStepStore",
    "StepStore",
    # Errors
    "CoverageResolutionError",
    "ImportIncompleteError",
    "ImportRejectedError",
    "JurisdictionError",
    "OrderingError",
    "PersistenceError",
    "PricingError",
    "StaleSequenceError",
    "StepNotFoundError",
    "StepValidationError",
]
