"""
Tests for step persistence: document mapping, the in-memory store and the MongoDB store.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from bson.decimal128 import Decimal128
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from conftest import factor, operand
from pricing_engine import (
    ALL_STATES,
    FactorStep,
    InMemoryStepStore,
    OperandStep,
    PersistenceError,
    RestrictedStates,
    RoundingMode,
    StaleSequenceError,
    StepNotFoundError,
    StepStore,
    ValueType,
)
from pricing_engine.storage import MongoStepStore, encode_fields, step_from_document, step_to_document


class TestDocuments:
    """Tests for the model/document mapping."""

    def test_factor_document(self) -> None:
        step = FactorStep(
            step_name="Territory",
            coverages=["Building Coverage"],
            value=Decimal("1.15"),
            rounding=RoundingMode.TWO_DECIMALS,
            value_type=ValueType.TABLE,
            table="Territory",
            upstream_code="TERRITORY",
            order=4,
            states=RestrictedStates(codes=("TX", "CA")),
        )
        document = step_to_document(step)

        assert document == {
            "stepType": "factor",
            "stepName": "Territory",
            "coverages": ["Building Coverage"],
            "value": "1.15",
            "rounding": "2 Decimals",
            "type": "Table",
            "table": "Territory",
            "upstreamId": "TERRITORY",
            "order": 4,
            "stateScope": "restricted",
            "states": ["CA", "TX"],
        }
        assert step_from_document("s1", document) == step.model_copy(update={"id": "s1"})

    def test_operand_document(self) -> None:
        document = step_to_document(operand("/", order=2))
        assert document == {
            "stepType": "operand",
            "operand": "/",
            "order": 2,
            "stateScope": "all",
            "states": [],
        }
        assert isinstance(step_from_document("s2", document), OperandStep)

    def test_legacy_empty_states_mean_all(self) -> None:
        """Test documents without a scope tag treat an empty state list as every state."""
        step = step_from_document("s1", {"stepType": "factor", "stepName": "A", "coverages": ["X"], "states": []})
        assert step.states == ALL_STATES

    def test_legacy_state_list(self) -> None:
        step = step_from_document("s1", {"stepType": "operand", "operand": "+", "states": ["NY"]})
        assert step.states == RestrictedStates(codes=("NY",))

    def test_lenient_decoding(self) -> None:
        step = step_from_document(
            "s1",
            {
                "stepName": "A",
                "coverages": ["X"],
                "value": Decimal128("2.50"),
                "rounding": "Ceiling",
                "type": "Formula",
                "table": "",
            },
        )
        assert step.value == Decimal("2.50")
        assert step.rounding is RoundingMode.OTHER
        assert step.value_type is ValueType.OTHER
        assert step.table is None
        assert step.order == 0

    def test_blank_value_is_missing(self) -> None:
        step = step_from_document("s1", {"stepType": "factor", "stepName": "A", "coverages": ["X"], "value": ""})
        assert step.value is None

    def test_encode_fields(self) -> None:
        step = factor("3", states=RestrictedStates(codes=("WY",)))
        assert encode_fields(step, "value", "states") == {
            "value": "3",
            "stateScope": "restricted",
            "states": ["WY"],
        }


class TestInMemoryStepStore:
    """Tests for InMemoryStepStore."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryStepStore(), StepStore)

    def test_add_and_list_in_order(self) -> None:
        store = InMemoryStepStore()
        store.add_step("p1", factor("1", "B", order=1))
        store.add_step("p1", factor("1", "A", order=0))
        store.add_step("p2", factor("1", "C", order=0))

        assert [s.step_name for s in store.list_steps("p1")] == ["A", "B"]
        assert len(store.list_steps("p2")) == 1

    def test_update_and_delete(self) -> None:
        store = InMemoryStepStore()
        step_id = store.add_step("p1", factor("1"))
        store.update_step("p1", step_id, {"value": "9"})
        assert store.list_steps("p1")[0].value == Decimal("9")

        store.delete_step("p1", step_id)
        assert store.list_steps("p1") == []

    def test_unknown_id(self) -> None:
        store = InMemoryStepStore()
        with pytest.raises(StepNotFoundError):
            store.update_step("p1", "missing", {"order": 1})
        with pytest.raises(StepNotFoundError):
            store.delete_step("p1", "missing")

    def test_version_compare_and_set(self) -> None:
        store = InMemoryStepStore()
        assert store.get_version("p1") == 0
        assert store.bump_version("p1", 0) == 1
        with pytest.raises(StaleSequenceError) as exc_info:
            store.bump_version("p1", 0)
        assert exc_info.value.actual == 1

    def test_legacy_document(self) -> None:
        store = InMemoryStepStore()
        step_id = store.put_document("p1", {"stepType": "operand", "operand": "*", "order": 0, "states": []})
        (step,) = store.list_steps("p1")
        assert step.id == step_id
        assert step.states == ALL_STATES


@pytest.fixture
def mongo_store() -> MongoStepStore:
    """A MongoStepStore over mocked collections."""
    database = MagicMock()
    collections = {"steps": MagicMock(), "step_collections": MagicMock()}
    database.__getitem__.side_effect = collections.__getitem__
    return MongoStepStore(database)


class TestMongoStepStore:
    """Tests for MongoStepStore."""

    def test_add_step(self, mongo_store) -> None:
        step_id = mongo_store.add_step("p1", factor("2", "A"))

        (document,) = mongo_store.steps.insert_one.call_args.args
        assert document["_id"] == step_id
        assert document["productId"] == "p1"
        assert document["stepName"] == "A"

    def test_list_steps(self, mongo_store) -> None:
        mongo_store.steps.find.return_value.sort.return_value = [
            {"_id": "a", "productId": "p1", "stepType": "operand", "operand": "+", "order": 0},
        ]
        (step,) = mongo_store.list_steps("p1")

        mongo_store.steps.find.assert_called_once_with({"productId": "p1"})
        assert step.id == "a"
        assert step.operand.value == "+"

    def test_update_unknown_step(self, mongo_store) -> None:
        mongo_store.steps.update_one.return_value.matched_count = 0
        with pytest.raises(StepNotFoundError):
            mongo_store.update_step("p1", "missing", {"order": 3})

    def test_delete_step(self, mongo_store) -> None:
        mongo_store.steps.delete_one.return_value.deleted_count = 1
        mongo_store.delete_step("p1", "a")
        mongo_store.steps.delete_one.assert_called_once_with({"_id": "a", "productId": "p1"})

    def test_driver_errors_become_persistence_errors(self, mongo_store) -> None:
        mongo_store.steps.insert_one.side_effect = ServerSelectionTimeoutError("no server")
        with pytest.raises(PersistenceError):
            mongo_store.add_step("p1", factor("1"))

    def test_bump_version(self, mongo_store) -> None:
        mongo_store.versions.find_one_and_update.return_value = {"_id": "p1", "version": 4}
        assert mongo_store.bump_version("p1", 3) == 4
        mongo_store.versions.find_one_and_update.assert_called_once_with(
            {"_id": "p1", "version": 3},
            {"$inc": {"version": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def test_first_bump_accepts_missing_document(self, mongo_store) -> None:
        mongo_store.versions.find_one_and_update.return_value = {"_id": "p1", "version": 1}
        mongo_store.bump_version("p1", 0)
        query = mongo_store.versions.find_one_and_update.call_args.args[0]
        assert query["version"] == {"$in": [0, None]}

    def test_stale_bump(self, mongo_store) -> None:
        """Test an upsert colliding with a newer version document is reported as stale."""
        mongo_store.versions.find_one_and_update.side_effect = DuplicateKeyError("dup")
        mongo_store.versions.find_one.return_value = {"_id": "p1", "version": 7}

        with pytest.raises(StaleSequenceError) as exc_info:
            mongo_store.bump_version("p1", 5)
        assert exc_info.value.actual == 7
