"""
Step sequence evaluator.
Folds an ordered list of factor and operand steps into a single premium.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from functools import lru_cache

from .models import FactorStep, Operand, OperandStep

UNDEFINED_PREMIUM = "N/A"

_CENT = Decimal("0.01")
_TENTH = Decimal("0.1")


def _combine(result: Decimal, operand: Operand, value: Decimal) -> Decimal:
    if operand is Operand.ADD:
        return result + value
    if operand is Operand.SUBTRACT:
        return result - value
    if operand is Operand.MULTIPLY:
        return result * value
    if operand is Operand.DIVIDE:
        # Division by zero leaves the running result untouched.
        return result / value if value != 0 else result
    # Operand.EQUALS combines nothing.
    return result


def _round(value: Decimal, exponent: Decimal = _CENT) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(exponent, rounding=ROUND_HALF_UP)


def _walk(
    steps: Iterable[FactorStep | OperandStep],
) -> Iterator[tuple[FactorStep, Operand | None, Decimal]]:
    """Yield each factor with the operand combined into it and the running result."""
    result: Decimal | None = None
    pending: Operand | None = None

    for step in steps:
        if isinstance(step, OperandStep):
            pending = step.operand
            continue

        value = step.value if step.value is not None else Decimal("0")
        if result is None:
            result = value
            yield step, None, result
        elif pending is not None:
            # The pending operand is not consumed: it applies to every
            # following factor until another operand step replaces it.
            result = _combine(result, pending, value)
            yield step, pending, result
        else:
            yield step, None, result


@lru_cache(maxsize=256)
def _fold(steps: tuple[FactorStep | OperandStep, ...]) -> Decimal | None:
    result: Decimal | None = None
    for _, _, result in _walk(steps):
        pass
    if result is None:
        return None
    return _round(result)


def evaluate(steps: Iterable[FactorStep | OperandStep]) -> Decimal | None:
    """
    Evaluate an ordered step sequence.

    Args:
        steps: Steps in ascending order, optionally pre-filtered

    Returns:
        The premium rounded to two decimal places, or None when the
        sequence holds no factor step
    """
    return _fold(tuple(steps))


@dataclass(frozen=True)
class TraceRow:
    """
    Running state of the evaluation after one factor step.

    Attributes:
        step: The factor step
        operand: Operand combined into this factor, or None when the
            factor started the result or had no operand before it
        running_total: Result after this factor, rounded to cents
        impact: Change in the result caused by this factor
        impact_percent: Impact relative to the previous result, or 0
            when the previous result was 0
    """

    step: FactorStep
    operand: Operand | None
    running_total: Decimal
    impact: Decimal
    impact_percent: Decimal

    @property
    def skipped(self) -> bool:
        """True when the factor was a zero divisor and left the result as is."""
        value = self.step.value if self.step.value is not None else Decimal("0")
        return self.operand is Operand.DIVIDE and value == 0


def evaluate_trace(steps: Iterable[FactorStep | OperandStep]) -> list[TraceRow]:
    """
    Evaluate a sequence step by step.

    Uses the same fold as `evaluate`, so the last row's running total
    equals the premium. Operand steps produce no row of their own; they
    show up as the operand of the factors that follow them.
    """
    rows = []
    previous = Decimal("0")
    for step, operand, result in _walk(tuple(steps)):
        impact = result - previous
        percent = impact / previous * 100 if previous != 0 else Decimal("0")
        rows.append(
            TraceRow(
                step=step,
                operand=operand,
                running_total=_round(result),
                impact=_round(impact),
                impact_percent=_round(percent, _TENTH),
            )
        )
        previous = result
    return rows


def format_premium(premium: Decimal | None) -> str:
    """Display text for a premium: two decimals, or N/A when undefined."""
    if premium is None:
        return UNDEFINED_PREMIUM
    return f"{premium:.2f}"
