"""
MongoDB-backed step store.

Steps of every product live in one collection, keyed by `productId`.
A second collection holds one version document per product; its
`version` counter is advanced with a conditional update so concurrent
editors cannot silently overwrite each other's ordering.
"""

import logging
import uuid
from typing import Any

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import Settings, get_settings
from ..core.exceptions import PersistenceError, StaleSequenceError, StepNotFoundError
from ..core.models import FactorStep, OperandStep
from .documents import step_from_document, step_to_document

logger = logging.getLogger(__name__)


class MongoStepStore:
    """Step store over a MongoDB database."""

    def __init__(
        self,
        database: Database,
        steps_collection: str = "steps",
        versions_collection: str = "step_collections",
    ) -> None:
        self.steps: Collection = database[steps_collection]
        self.versions: Collection = database[versions_collection]

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MongoStepStore":
        """Connect using the configured URI and database."""
        settings = settings or get_settings()
        client: MongoClient = MongoClient(
            settings.mongodb_uri, serverSelectionTimeoutMS=settings.mongodb_timeout_ms
        )
        return cls(
            client[settings.mongodb_database],
            steps_collection=settings.steps_collection,
            versions_collection=settings.versions_collection,
        )

    def list_steps(self, product_id: str) -> list[FactorStep | OperandStep]:
        try:
            cursor = self.steps.find({"productId": product_id}).sort("order", ASCENDING)
            documents = list(cursor)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load steps: {e}", {"product_id": product_id}) from e
        return [step_from_document(str(doc.pop("_id")), doc) for doc in documents]

    def add_step(self, product_id: str, step: FactorStep | OperandStep) -> str:
        document = step_to_document(step)
        document["_id"] = uuid.uuid4().hex
        document["productId"] = product_id
        try:
            self.steps.insert_one(document)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to add step: {e}", {"product_id": product_id}) from e
        return document["_id"]

    def update_step(self, product_id: str, step_id: str, fields: dict[str, Any]) -> None:
        try:
            result = self.steps.update_one(
                {"_id": step_id, "productId": product_id}, {"$set": fields}
            )
        except PyMongoError as e:
            raise PersistenceError(
                f"Failed to update step {step_id}: {e}", {"step_id": step_id}
            ) from e
        if result.matched_count == 0:
            raise StepNotFoundError(step_id)

    def delete_step(self, product_id: str, step_id: str) -> None:
        try:
            result = self.steps.delete_one({"_id": step_id, "productId": product_id})
        except PyMongoError as e:
            raise PersistenceError(
                f"Failed to delete step {step_id}: {e}", {"step_id": step_id}
            ) from e
        if result.deleted_count == 0:
            raise StepNotFoundError(step_id)

    def get_version(self, product_id: str) -> int:
        try:
            document = self.versions.find_one({"_id": product_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to read collection version: {e}") from e
        return int(document["version"]) if document else 0

    def bump_version(self, product_id: str, expected: int) -> int:
        # A missing version document counts as version 0.
        version_filter: Any = expected if expected else {"$in": [0, None]}
        try:
            document = self.versions.find_one_and_update(
                {"_id": product_id, "version": version_filter},
                {"$inc": {"version": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            # The upsert collided with a version document that has moved on.
            raise StaleSequenceError(expected, self.get_version(product_id)) from e
        except PyMongoError as e:
            raise PersistenceError(f"Failed to advance collection version: {e}") from e
        return int(document["version"])
