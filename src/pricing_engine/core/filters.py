"""
Coverage and jurisdiction filtering for scenario previews.
"""

from collections.abc import Collection, Iterable

from .models import FactorStep, OperandStep


def _normalize_selection(states: Iterable[str] | None) -> tuple[str, ...]:
    if not states:
        return ()
    return tuple(dict.fromkeys(s.strip().upper() for s in states if s and s.strip()))


def _factor_coverages(steps: Iterable[FactorStep | OperandStep]) -> frozenset[str]:
    return frozenset(
        name for step in steps if isinstance(step, FactorStep) for name in step.coverages
    )


def step_matches(
    step: FactorStep | OperandStep,
    coverage: str | None = None,
    states: Iterable[str] | None = None,
    product_coverages: Collection[str] | None = None,
) -> bool:
    """
    Check a single step against a coverage and jurisdiction selection.

    Factor steps must list the selected coverage. Operands belong to
    every coverage of the product, so they pass the coverage test when
    the selection is one of `product_coverages` (or when that is None).
    Every step must apply in all selected jurisdictions at once.
    """
    if coverage:
        if isinstance(step, FactorStep):
            if coverage not in step.coverages:
                return False
        elif product_coverages is not None and coverage not in product_coverages:
            return False
    return all(step.states.covers(code) for code in _normalize_selection(states))


def filter_steps(
    steps: Iterable[FactorStep | OperandStep],
    coverage: str | None = None,
    states: Iterable[str] | None = None,
    product_coverages: Collection[str] | None = None,
) -> tuple[FactorStep | OperandStep, ...]:
    """
    Narrow a step sequence for a coverage and/or set of jurisdictions.

    Args:
        steps: Ordered step sequence
        coverage: Selected coverage name, or None for all coverages
        states: Selected jurisdiction codes, or None/empty for all
        product_coverages: Coverage names the product offers; defaults
            to the coverages listed by the sequence's factor steps

    Returns:
        The matching steps, order preserved
    """
    steps = tuple(steps)
    if coverage and product_coverages is None:
        product_coverages = _factor_coverages(steps)
    selected = _normalize_selection(states)
    return tuple(
        step for step in steps if step_matches(step, coverage, selected, product_coverages)
    )
