"""
Core components for the Pricing Step Engine.
"""

from .catalog import CoverageCatalog
from .evaluator import (
    UNDEFINED_PREMIUM,
    TraceRow,
    evaluate,
    evaluate_trace,
    format_premium,
)
from .exceptions import (
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
from .filters import filter_steps, step_matches
from .models import (
    ALL_STATES,
    JURISDICTIONS,
    OPERAND_SYMBOLS,
    Coverage,
    FactorStep,
    Operand,
    OperandStep,
    RestrictedStates,
    RoundingMode,
    Step,
    StepType,
    UnrestrictedStates,
    ValueType,
    describe_states,
    parse_decimal,
    states_from_codes,
)
from .ordering import MoveDirection, ReorderManager, StepSequence

__all__ = [
    # Models
    "ALL_STATES",
    "JURISDICTIONS",
    "OPERAND_SYMBOLS",
    "Coverage",
    "FactorStep",
    "Operand",
    "OperandStep",
    "RestrictedStates",
    "RoundingMode",
    "Step",
    "StepType",
    "UnrestrictedStates",
    "ValueType",
    "describe_states",
    "parse_decimal",
    "states_from_codes",
    # Catalog
    "CoverageCatalog",
    # Evaluation & filtering
    "UNDEFINED_PREMIUM",
    "TraceRow",
    "evaluate",
    "evaluate_trace",
    "format_premium",
    "filter_steps",
    "step_matches",
    # Ordering
    "MoveDirection",
    "ReorderManager",
    "StepSequence",
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
