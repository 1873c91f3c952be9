"""
Ordered step index and the reorder manager.

The sequence keeps steps sorted by their `order` value and checks that
the values stay unique and dense (0..n-1). Reordering swaps the order
values of two adjacent steps and persists exactly those two records.
"""

import logging
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import (
    OrderingError,
    PersistenceError,
    PricingError,
    StaleSequenceError,
    StepNotFoundError,
)
from .models import FactorStep, OperandStep

if TYPE_CHECKING:
    from ..storage.base import StepStore

logger = logging.getLogger(__name__)

AnyStep = FactorStep | OperandStep


class MoveDirection(str, Enum):
    """Direction of a single-slot move."""

    UP = "up"
    DOWN = "down"


class StepSequence:
    """
    Explicit ordered index over a product's steps.

    Attributes:
        version: Collection version the sequence was last synchronised with
        diverged: Set when a failed write could not be compensated; the
            sequence must be reloaded before further mutation
    """

    def __init__(self, steps: Iterable[AnyStep] = (), version: int = 0) -> None:
        self._steps: list[AnyStep] = sorted(steps, key=lambda s: (s.order, s.id or ""))
        self.version = version
        self.diverged = False

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[AnyStep]:
        return iter(self._steps)

    def __getitem__(self, index: int) -> AnyStep:
        return self._steps[index]

    @property
    def steps(self) -> tuple[AnyStep, ...]:
        return tuple(self._steps)

    @property
    def next_order(self) -> int:
        """Order value for an appended step, one past the highest in use."""
        if not self._steps:
            return 0
        return max(s.order for s in self._steps) + 1

    def index_of(self, step_id: str) -> int:
        for i, step in enumerate(self._steps):
            if step.id == step_id:
                return i
        raise StepNotFoundError(step_id)

    def get(self, step_id: str) -> AnyStep:
        return self._steps[self.index_of(step_id)]

    def is_dense(self) -> bool:
        return [s.order for s in self._steps] == list(range(len(self._steps)))

    def check_invariants(self) -> None:
        """Raise OrderingError unless order values are unique and dense."""
        orders = [s.order for s in self._steps]
        if len(set(orders)) != len(orders):
            duplicates = sorted({o for o in orders if orders.count(o) > 1})
            raise OrderingError(
                f"Duplicate order values: {duplicates}", {"duplicates": duplicates}
            )
        if not self.is_dense():
            raise OrderingError("Order values are not contiguous", {"orders": orders})
        ids = [s.id for s in self._steps if s.id is not None]
        if len(set(ids)) != len(ids):
            raise OrderingError("Duplicate step ids in sequence")

    def renumbered(self) -> list[AnyStep]:
        """Copies of the steps whose order differs from their position."""
        return [
            step.model_copy(update={"order": position})
            for position, step in enumerate(self._steps)
            if step.order != position
        ]

    def apply(self, steps: Iterable[AnyStep]) -> None:
        """Replace steps by id with updated copies, keeping positions."""
        for step in steps:
            self._steps[self.index_of(step.id)] = step

    def append(self, step: AnyStep) -> None:
        if any(s.order == step.order for s in self._steps):
            raise OrderingError(
                f"Order {step.order} is already taken", {"order": step.order}
            )
        if step.order != self.next_order:
            raise OrderingError(
                f"Appended step must take order {self.next_order}, got {step.order}"
            )
        self._steps.append(step)

    def replace(self, step: AnyStep) -> None:
        """Swap in an edited copy of a step; its order must not change."""
        index = self.index_of(step.id)
        if self._steps[index].order != step.order:
            raise OrderingError("Use a move to change a step's order")
        self._steps[index] = step

    def remove(self, step_id: str) -> list[AnyStep]:
        """
        Remove a step.

        Returns:
            Renumbered copies of the steps after it; persist each one and
            `apply` it to close the gap
        """
        index = self.index_of(step_id)
        del self._steps[index]
        return self.renumbered()

    def move_target(self, index: int, direction: MoveDirection | str) -> int | None:
        """Position a step would move to, or None when out of bounds."""
        if not 0 <= index < len(self._steps):
            return None
        target = index - 1 if MoveDirection(direction) is MoveDirection.UP else index + 1
        if not 0 <= target < len(self._steps):
            return None
        return target

    def swap(self, index: int, target: int) -> tuple[AnyStep, AnyStep]:
        """Exchange the order values (and positions) of two steps."""
        first, second = self._steps[index], self._steps[target]
        moved_first = first.model_copy(update={"order": second.order})
        moved_second = second.model_copy(update={"order": first.order})
        self._steps[index], self._steps[target] = moved_second, moved_first
        return moved_first, moved_second


class ReorderManager:
    """
    Moves steps one slot up or down and persists the two changed records.

    Each move claims the store's collection version first; a move based
    on a stale view of the sequence is rejected.
    """

    def __init__(self, store: "StepStore", product_id: str, sequence: StepSequence) -> None:
        self.store = store
        self.product_id = product_id
        self.sequence = sequence

    def move(
        self,
        index: int,
        direction: MoveDirection | str,
        base_version: int | None = None,
    ) -> bool:
        """
        Move the step at `index` one slot.

        Args:
            index: Position in the loaded sequence
            direction: "up" or "down"
            base_version: Version the caller's view was rendered from

        Returns:
            True if the step moved, False for an out-of-bounds no-op

        Raises:
            StaleSequenceError: The collection changed since base_version
            PersistenceError: A write failed; memory is left unchanged
            StepNotFoundError: A record vanished from the store mid-move
        """
        sequence = self.sequence
        target = sequence.move_target(index, direction)
        if target is None:
            return False
        if sequence.diverged:
            raise OrderingError("Sequence diverged from storage; reload before moving steps")
        if base_version is not None and base_version != sequence.version:
            raise StaleSequenceError(base_version, sequence.version)

        sequence.version = self.store.bump_version(self.product_id, sequence.version)

        first, second = sequence[index], sequence[target]
        self.store.update_step(self.product_id, first.id, {"order": second.order})
        try:
            self.store.update_step(self.product_id, second.id, {"order": first.order})
        except (PersistenceError, StepNotFoundError) as exc:
            self._compensate(first, exc)
            raise

        sequence.swap(index, target)
        logger.info(
            "Moved step %s %s (position %d -> %d)",
            first.id,
            MoveDirection(direction).value,
            index,
            target,
        )
        return True

    def _compensate(self, step: AnyStep, cause: PricingError) -> None:
        """Write back the original order of the first of two swapped steps."""
        try:
            self.store.update_step(self.product_id, step.id, {"order": step.order})
        except (PersistenceError, StepNotFoundError):
            self.sequence.diverged = True
            cause.details["diverged"] = True
            logger.error(
                "Could not restore order %d of step %s after a failed move",
                step.order,
                step.id,
            )
        else:
            logger.warning("Reverted partial move of step %s", step.id)
