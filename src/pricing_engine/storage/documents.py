"""
Mapping between step models and stored documents.

Documents keep the field names the pricing screens have always written
(stepType, stepName, upstreamId, ...). The state scope is stored with an
explicit `stateScope` tag; documents written before the tag existed use
an empty state list to mean "all states".
"""

from decimal import Decimal
from typing import Any

from ..core.models import (
    ALL_STATES,
    STEP_ADAPTER,
    FactorStep,
    OperandStep,
    RestrictedStates,
    RoundingMode,
    UnrestrictedStates,
    ValueType,
    states_from_codes,
)

SCOPE_ALL = "all"
SCOPE_RESTRICTED = "restricted"

# Model attribute -> document field
_FIELD_NAMES: dict[str, str] = {
    "step_type": "stepType",
    "step_name": "stepName",
    "coverages": "coverages",
    "value": "value",
    "rounding": "rounding",
    "value_type": "type",
    "table": "table",
    "upstream_code": "upstreamId",
    "operand": "operand",
    "order": "order",
}


def encode_states(scope: UnrestrictedStates | RestrictedStates) -> dict[str, Any]:
    if scope.is_restricted:
        return {"stateScope": SCOPE_RESTRICTED, "states": list(scope.members())}
    return {"stateScope": SCOPE_ALL, "states": []}


def decode_states(document: dict[str, Any]) -> UnrestrictedStates | RestrictedStates:
    scope = document.get("stateScope")
    codes = document.get("states") or []
    if scope == SCOPE_ALL:
        return ALL_STATES
    if scope == SCOPE_RESTRICTED and not codes:
        # An explicit restriction to nothing cannot be represented.
        return ALL_STATES
    return states_from_codes(codes)


def _encode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "value"):  # Enum
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


def encode_fields(step: FactorStep | OperandStep, *names: str) -> dict[str, Any]:
    """Encode selected model attributes as document fields."""
    fields: dict[str, Any] = {}
    for name in names:
        if name == "states":
            fields.update(encode_states(step.states))
        else:
            fields[_FIELD_NAMES[name]] = _encode_value(getattr(step, name))
    return fields


def step_to_document(step: FactorStep | OperandStep) -> dict[str, Any]:
    """Full document for a step, without its id."""
    if isinstance(step, FactorStep):
        names = [
            "step_type",
            "step_name",
            "coverages",
            "value",
            "rounding",
            "value_type",
            "table",
            "upstream_code",
            "order",
            "states",
        ]
    else:
        names = ["step_type", "operand", "order", "states"]
    return encode_fields(step, *names)


def _decode_number(value: Any) -> Any:
    # bson.Decimal128 and similar wrappers expose to_decimal()
    if hasattr(value, "to_decimal"):
        return value.to_decimal()
    return value


def _decode_value_type(value: Any) -> ValueType:
    try:
        return ValueType(value or ValueType.USER_INPUT.value)
    except ValueError:
        return ValueType.OTHER


def step_from_document(step_id: str | None, document: dict[str, Any]) -> FactorStep | OperandStep:
    """Build a step model from a stored document."""
    step_type = document.get("stepType", "factor")
    data: dict[str, Any] = {
        "id": step_id,
        "step_type": step_type,
        "order": int(document.get("order") or 0),
        "states": decode_states(document),
    }
    if step_type == "operand":
        data["operand"] = document.get("operand")
    else:
        value = _decode_number(document.get("value"))
        data.update(
            {
                "step_name": document.get("stepName") or "",
                "coverages": document.get("coverages") or [],
                "value": None if value in (None, "") else value,
                "rounding": RoundingMode.parse(document.get("rounding")),
                "value_type": _decode_value_type(document.get("type")),
                "table": document.get("table") or None,
                "upstream_code": document.get("upstreamId") or None,
            }
        )
    return STEP_ADAPTER.validate_python(data)
