"""
Step store interface and the in-memory implementation.
"""

import uuid
from copy import deepcopy
from typing import Any, Protocol, runtime_checkable

from ..core.exceptions import StaleSequenceError, StepNotFoundError
from ..core.models import FactorStep, OperandStep
from .documents import step_from_document, step_to_document


@runtime_checkable
class StepStore(Protocol):
    """
    Ordered-record persistence for a product's steps.

    Implementations raise PersistenceError for failed writes and
    StepNotFoundError for unknown ids. They never retry.
    """

    def list_steps(self, product_id: str) -> list[FactorStep | OperandStep]:
        """Read every step of a product, ascending by order."""
        ...

    def add_step(self, product_id: str, step: FactorStep | OperandStep) -> str:
        """Append a step and return its new id."""
        ...

    def update_step(self, product_id: str, step_id: str, fields: dict[str, Any]) -> None:
        """Overwrite the given document fields of one step."""
        ...

    def delete_step(self, product_id: str, step_id: str) -> None:
        """Permanently remove one step."""
        ...

    def get_version(self, product_id: str) -> int:
        """Current version of the product's step collection (0 if never written)."""
        ...

    def bump_version(self, product_id: str, expected: int) -> int:
        """
        Compare-and-set the collection version.

        Raises:
            StaleSequenceError: The stored version is not `expected`
        """
        ...


class InMemoryStepStore:
    """
    Step store backed by dictionaries of documents.

    Used by tests, the sample script and the dashboard when no database
    is configured.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, dict[str, Any]]] = {}
        self._versions: dict[str, int] = {}

    def _collection(self, product_id: str) -> dict[str, dict[str, Any]]:
        return self._documents.setdefault(product_id, {})

    def list_steps(self, product_id: str) -> list[FactorStep | OperandStep]:
        steps = [
            step_from_document(step_id, document)
            for step_id, document in self._collection(product_id).items()
        ]
        return sorted(steps, key=lambda s: (s.order, s.id or ""))

    def add_step(self, product_id: str, step: FactorStep | OperandStep) -> str:
        step_id = uuid.uuid4().hex
        self._collection(product_id)[step_id] = step_to_document(step)
        return step_id

    def update_step(self, product_id: str, step_id: str, fields: dict[str, Any]) -> None:
        collection = self._collection(product_id)
        if step_id not in collection:
            raise StepNotFoundError(step_id)
        collection[step_id].update(deepcopy(fields))

    def delete_step(self, product_id: str, step_id: str) -> None:
        collection = self._collection(product_id)
        if step_id not in collection:
            raise StepNotFoundError(step_id)
        del collection[step_id]

    def get_version(self, product_id: str) -> int:
        return self._versions.get(product_id, 0)

    def bump_version(self, product_id: str, expected: int) -> int:
        current = self.get_version(product_id)
        if current != expected:
            raise StaleSequenceError(expected, current)
        self._versions[product_id] = current + 1
        return current + 1

    def get_document(self, product_id: str, step_id: str) -> dict[str, Any]:
        """Raw stored document, for inspection."""
        return deepcopy(self._collection(product_id)[step_id])

    def put_document(self, product_id: str, document: dict[str, Any], step_id: str | None = None) -> str:
        """Store a raw document as-is, e.g. one written by an older release."""
        step_id = step_id or uuid.uuid4().hex
        self._collection(product_id)[step_id] = deepcopy(document)
        return step_id
