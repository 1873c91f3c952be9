"""
Core data models for the Pricing Step Engine.
Uses Pydantic for validation and serialization.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

# Fixed jurisdiction enumeration; export columns follow this order.
JURISDICTIONS: tuple[str, ...] = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
)

_JURISDICTION_INDEX: dict[str, int] = {code: i for i, code in enumerate(JURISDICTIONS)}


def is_jurisdiction(code: str) -> bool:
    """Check whether a code belongs to the fixed jurisdiction enumeration."""
    return code in _JURISDICTION_INDEX


class StepType(str, Enum):
    """Kinds of sequence elements."""

    FACTOR = "factor"
    OPERAND = "operand"


class Operand(str, Enum):
    """Arithmetic symbols carried by operand steps."""

    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    EQUALS = "="  # No-op combinator


OPERAND_SYMBOLS: tuple[str, ...] = tuple(op.value for op in Operand)


class RoundingMode(str, Enum):
    """Rounding labels attached to factor steps. Metadata only."""

    NONE = "none"
    WHOLE = "Whole Number"
    ONE_DECIMAL = "1 Decimal"
    TWO_DECIMALS = "2 Decimals"
    OTHER = "Other"

    @classmethod
    def parse(cls, text: str | None) -> "RoundingMode":
        """Match a label case-insensitively; blank is NONE, unknown is OTHER."""
        cleaned = (text or "").strip().lower()
        if not cleaned:
            return cls.NONE
        for mode in cls:
            if cleaned in (mode.value.lower(), mode.name.lower()):
                return mode
        return cls.OTHER


class ValueType(str, Enum):
    """Where a factor's value comes from."""

    USER_INPUT = "User Input"
    TABLE = "Table"
    OTHER = "Other"


class UnrestrictedStates(BaseModel):
    """State scope that applies in every jurisdiction."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unrestricted"] = "unrestricted"

    @property
    def is_restricted(self) -> bool:
        return False

    def covers(self, code: str) -> bool:
        return True

    def members(self) -> tuple[str, ...]:
        """Materialize the scope as explicit jurisdiction codes."""
        return JURISDICTIONS


class RestrictedStates(BaseModel):
    """State scope limited to an explicit, non-empty set of jurisdictions."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["restricted"] = "restricted"
    codes: tuple[str, ...] = Field(min_length=1)

    @field_validator("codes", mode="before")
    @classmethod
    def _normalize_codes(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = [value]
        cleaned = {str(code).strip().upper() for code in value if str(code).strip()}
        unknown = sorted(code for code in cleaned if not is_jurisdiction(code))
        if unknown:
            raise ValueError(f"Unknown jurisdiction codes: {', '.join(unknown)}")
        return tuple(sorted(cleaned, key=_JURISDICTION_INDEX.__getitem__))

    @property
    def is_restricted(self) -> bool:
        return True

    def covers(self, code: str) -> bool:
        return code in self.codes

    def members(self) -> tuple[str, ...]:
        return self.codes


StateScope = Annotated[
    Union[UnrestrictedStates, RestrictedStates], Field(discriminator="kind")
]

ALL_STATES = UnrestrictedStates()


def states_from_codes(codes: Any) -> UnrestrictedStates | RestrictedStates:
    """Build a state scope from a collection of codes; empty means unrestricted."""
    if codes is None:
        return ALL_STATES
    codes = [str(c).strip() for c in codes if str(c).strip()]
    if not codes:
        return ALL_STATES
    return RestrictedStates(codes=tuple(codes))


def describe_states(scope: UnrestrictedStates | RestrictedStates) -> str:
    """Short label for a state scope: All, a single code, or Multiple."""
    members = scope.members()
    if not scope.is_restricted or len(members) == len(JURISDICTIONS):
        return "All"
    if len(members) == 1:
        return members[0]
    return "Multiple"


def parse_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """
    Parse a loosely formatted number such as "$1,250.00".

    Anything except digits, the decimal point and the minus sign is
    discarded; text that still does not parse yields the default.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value:  # NaN
            return default
        return Decimal(str(value))
    cleaned = "".join(ch for ch in str(value) if ch.isdigit() or ch in ".-")
    try:
        return Decimal(cleaned) if cleaned else default
    except InvalidOperation:
        return default


class _StepBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    order: int = Field(default=0, ge=0)
    states: StateScope = Field(default_factory=UnrestrictedStates)

    @property
    def is_factor(self) -> bool:
        return False


class FactorStep(_StepBase):
    """A sequence element carrying a value scoped to coverages and states."""

    step_type: Literal["factor"] = "factor"
    step_name: str = ""
    coverages: tuple[str, ...] = ()
    value: Decimal | None = None
    rounding: RoundingMode = RoundingMode.NONE
    value_type: ValueType = ValueType.USER_INPUT
    table: str | None = None
    upstream_code: str | None = None

    @field_validator("step_name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("coverages", mode="before")
    @classmethod
    def _normalize_coverages(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(";")
        seen: list[str] = []
        for name in value:
            name = str(name).strip()
            if name and name not in seen:
                seen.append(name)
        return tuple(seen)

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> Any:
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @property
    def is_factor(self) -> bool:
        return True

    def validation_errors(self) -> list[str]:
        """Return the reasons this step cannot be saved."""
        errors = []
        if not self.step_name:
            errors.append("Step Name is required")
        if not self.coverages:
            errors.append("At least one coverage is required")
        return errors


class OperandStep(_StepBase):
    """A sequence element carrying an arithmetic symbol."""

    step_type: Literal["operand"] = "operand"
    operand: Operand

    def validation_errors(self) -> list[str]:
        return []


Step = Annotated[Union[FactorStep, OperandStep], Field(discriminator="step_type")]

STEP_ADAPTER: TypeAdapter[FactorStep | OperandStep] = TypeAdapter(Step)


class Coverage(BaseModel):
    """Coverage offered by the active product."""

    id: str | None = None
    name: str
    coverage_code: str
