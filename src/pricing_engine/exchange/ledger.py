"""
Import write ledger.

An import is an ordered log of pending appends with a cursor. Writes are
issued one at a time; a failure stops the ladder and leaves the cursor
on the failed write so the batch can be resumed or rolled back.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..core.exceptions import ImportIncompleteError, PersistenceError, StepNotFoundError
from ..core.models import FactorStep, OperandStep

if TYPE_CHECKING:
    from ..storage.base import StepStore

logger = logging.getLogger(__name__)


@dataclass
class PendingWrite:
    """One append in an import batch."""

    step: FactorStep | OperandStep
    step_id: str | None = None

    @property
    def applied(self) -> bool:
        return self.step_id is not None

    def stored_step(self) -> FactorStep | OperandStep:
        """The step as it exists in the store, with its assigned id."""
        return self.step.model_copy(update={"id": self.step_id})


@dataclass
class ImportPlan:
    """
    Ordered log of appends produced by parsing an exchange document.

    Attributes:
        writes: Appends in file order, each with its final order value
        skipped: Parsed rows left out as duplicates of existing steps
        cursor: Index of the next write to issue
    """

    writes: list[PendingWrite] = field(default_factory=list)
    skipped: list[Any] = field(default_factory=list)
    cursor: int = 0

    @classmethod
    def from_steps(
        cls, steps: list[FactorStep | OperandStep], skipped: list[Any] | None = None
    ) -> "ImportPlan":
        return cls(writes=[PendingWrite(step) for step in steps], skipped=list(skipped or []))

    @property
    def total(self) -> int:
        return len(self.writes)

    @property
    def done(self) -> bool:
        return self.cursor >= self.total

    @property
    def pending(self) -> list[FactorStep | OperandStep]:
        return [write.step for write in self.writes[self.cursor:]]

    @property
    def applied_steps(self) -> list[FactorStep | OperandStep]:
        return [write.stored_step() for write in self.writes[: self.cursor]]

    def apply(
        self, store: "StepStore", product_id: str, atomic: bool = False
    ) -> list[FactorStep | OperandStep]:
        """
        Issue the remaining writes in order.

        Args:
            store: Step store to append to
            product_id: Product owning the steps
            atomic: Roll back every applied write if one fails

        Returns:
            The steps written by this batch, with their ids

        Raises:
            ImportIncompleteError: A write failed; the error carries the
                cursor and whatever is still stored (nothing, if rolled back)
        """
        while self.cursor < self.total:
            write = self.writes[self.cursor]
            try:
                write.step_id = store.add_step(product_id, write.step)
            except PersistenceError as exc:
                position = self.cursor
                logger.error(
                    "Import write %d of %d failed: %s", position + 1, self.total, exc.message
                )
                if atomic:
                    try:
                        self.rollback(store, product_id)
                    except PersistenceError as rollback_exc:
                        raise ImportIncompleteError(
                            f"Import write {position + 1} of {self.total} failed and "
                            f"rollback stopped with {self.cursor} writes still stored",
                            cursor=self.cursor,
                            total=self.total,
                            applied=self.applied_steps,
                        ) from rollback_exc
                    raise ImportIncompleteError(
                        f"Import rolled back after write {position + 1} of {self.total} failed",
                        cursor=position,
                        total=self.total,
                        rolled_back=True,
                    ) from exc
                raise ImportIncompleteError(
                    f"Import stopped at write {position + 1} of {self.total}: {exc.message}",
                    cursor=position,
                    total=self.total,
                    applied=self.applied_steps,
                ) from exc
            self.cursor += 1
        return self.applied_steps

    def resume(self, store: "StepStore", product_id: str) -> list[FactorStep | OperandStep]:
        """Continue a stopped batch from its cursor."""
        already = self.cursor
        self.apply(store, product_id)
        return self.applied_steps[already:]

    def rollback(self, store: "StepStore", product_id: str) -> None:
        """
        Delete applied writes, most recent first.

        A write whose record is already gone counts as rolled back. If a
        delete fails the cursor stays on the writes still stored.
        """
        while self.cursor > 0:
            write = self.writes[self.cursor - 1]
            try:
                store.delete_step(product_id, write.step_id)
            except StepNotFoundError:
                logger.warning("Rolled back write %s was already deleted", write.step_id)
            except PersistenceError:
                logger.error("Rollback failed at write %d of %d", self.cursor, self.total)
                raise
            write.step_id = None
            self.cursor -= 1
        logger.info("Rolled back import batch of %d writes", self.total)
