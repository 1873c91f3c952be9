"""
Tests for the ordered step index and the reorder manager.
"""

from unittest.mock import MagicMock

import pytest

from conftest import factor, operand
from pricing_engine import (
    InMemoryStepStore,
    MoveDirection,
    OrderingError,
    PersistenceError,
    StaleSequenceError,
    StepNotFoundError,
    StepSequence,
)
from pricing_engine.core.ordering import ReorderManager


def _stored_sequence(store: InMemoryStepStore, product_id: str = "p1") -> StepSequence:
    for i, step in enumerate([factor("1", "A"), operand("*"), factor("2", "B")]):
        store.add_step(product_id, step.model_copy(update={"order": i}))
    return StepSequence(store.list_steps(product_id), store.get_version(product_id))


class TestStepSequence:
    """Tests for StepSequence."""

    def test_sorted_by_order(self) -> None:
        seq = StepSequence(
            [factor("1", order=2, id="c"), factor("1", order=0, id="a"), operand("+", order=1, id="b")]
        )
        assert [s.id for s in seq] == ["a", "b", "c"]
        assert seq.is_dense()
        seq.check_invariants()

    def test_duplicate_orders_rejected(self) -> None:
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=0, id="b")])
        with pytest.raises(OrderingError, match="Duplicate"):
            seq.check_invariants()

    def test_gaps_rejected(self) -> None:
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=3, id="b")])
        assert not seq.is_dense()
        with pytest.raises(OrderingError):
            seq.check_invariants()

    def test_renumbered(self) -> None:
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=3, id="b")])
        changed = seq.renumbered()
        assert [(s.id, s.order) for s in changed] == [("b", 1)]

    def test_append_takes_next_order(self) -> None:
        seq = StepSequence([factor("1", order=0, id="a")])
        seq.append(operand("+", order=1, id="b"))
        assert seq.next_order == 2
        with pytest.raises(OrderingError):
            seq.append(operand("+", order=5, id="c"))

    def test_next_order_follows_highest_order(self) -> None:
        """Test appends go past the highest order even when values have gaps."""
        seq = StepSequence([factor("1", order=1, id="a"), factor("1", order=2, id="b")])
        assert seq.next_order == 3
        assert StepSequence().next_order == 0

    def test_append_rejects_taken_order(self) -> None:
        seq = StepSequence([factor("1", order=1, id="a"), factor("1", order=2, id="b")])
        with pytest.raises(OrderingError, match="already taken"):
            seq.append(operand("+", order=2, id="c"))
        seq.append(operand("+", order=3, id="c"))
        assert [s.order for s in seq] == [1, 2, 3]

    def test_replace_cannot_change_order(self) -> None:
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])
        with pytest.raises(OrderingError):
            seq.replace(factor("9", order=1, id="a"))

    def test_remove_returns_renumbered_tail(self) -> None:
        seq = StepSequence(
            [factor("1", order=0, id="a"), operand("+", order=1, id="b"), factor("1", order=2, id="c")]
        )
        tail = seq.remove("a")
        assert [(s.id, s.order) for s in tail] == [("b", 0), ("c", 1)]
        seq.apply(tail)
        seq.check_invariants()

    def test_unknown_id(self) -> None:
        with pytest.raises(StepNotFoundError):
            StepSequence().index_of("missing")

    def test_move_target_bounds(self) -> None:
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])
        assert seq.move_target(0, MoveDirection.UP) is None
        assert seq.move_target(1, "down") is None
        assert seq.move_target(0, "down") == 1
        assert seq.move_target(5, "up") is None


class TestReorderManager:
    """Tests for ReorderManager moves."""

    def test_move_down_swaps_orders(self) -> None:
        store = InMemoryStepStore()
        seq = _stored_sequence(store)
        first_id, second_id = seq[0].id, seq[1].id

        assert ReorderManager(store, "p1", seq).move(0, "down") is True

        assert [s.id for s in seq] == [second_id, first_id, seq[2].id]
        assert seq.is_dense()
        stored = {s.id: s.order for s in store.list_steps("p1")}
        assert stored[first_id] == 1
        assert stored[second_id] == 0

    def test_move_bumps_version(self) -> None:
        store = InMemoryStepStore()
        seq = _stored_sequence(store)
        ReorderManager(store, "p1", seq).move(1, MoveDirection.UP)
        assert seq.version == 1
        assert store.get_version("p1") == 1

    @pytest.mark.parametrize("index, direction", [(0, "up"), (2, "down"), (7, "up")])
    def test_out_of_bounds_is_noop(self, index, direction) -> None:
        """Test moving the first step up or the last step down changes nothing."""
        store = MagicMock()
        seq = StepSequence(
            [factor("1", order=0, id="a"), operand("+", order=1, id="b"), factor("1", order=2, id="c")]
        )
        assert ReorderManager(store, "p1", seq).move(index, direction) is False
        store.update_step.assert_not_called()
        store.bump_version.assert_not_called()

    def test_move_writes_exactly_two_records(self) -> None:
        store = MagicMock()
        store.bump_version.return_value = 1
        seq = StepSequence(
            [factor("1", order=0, id="a"), operand("+", order=1, id="b"), factor("1", order=2, id="c")]
        )
        ReorderManager(store, "p1", seq).move(1, "down")

        assert store.update_step.call_count == 2
        store.update_step.assert_any_call("p1", "b", {"order": 2})
        store.update_step.assert_any_call("p1", "c", {"order": 1})

    def test_stale_base_version_rejected(self) -> None:
        store = MagicMock()
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")], version=3)
        with pytest.raises(StaleSequenceError):
            ReorderManager(store, "p1", seq).move(0, "down", base_version=2)
        store.update_step.assert_not_called()

    def test_concurrent_editor_detected_by_store(self) -> None:
        """Test a move from a stale load fails once another editor has written."""
        store = InMemoryStepStore()
        seq = _stored_sequence(store)
        store.bump_version("p1", 0)  # another editor

        with pytest.raises(StaleSequenceError):
            ReorderManager(store, "p1", seq).move(0, "down")
        assert [s.order for s in store.list_steps("p1")] == [0, 1, 2]

    def test_second_write_failure_is_compensated(self) -> None:
        """Test the first write is reverted when the second fails."""
        store = MagicMock()
        store.bump_version.return_value = 1
        store.update_step.side_effect = [None, PersistenceError("boom"), None]
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])

        with pytest.raises(PersistenceError):
            ReorderManager(store, "p1", seq).move(0, "down")

        assert store.update_step.call_args_list[-1].args == ("p1", "a", {"order": 0})
        assert [s.id for s in seq] == ["a", "b"]
        assert [s.order for s in seq] == [0, 1]
        assert seq.diverged is False

    def test_failed_compensation_marks_divergence(self) -> None:
        store = MagicMock()
        store.bump_version.return_value = 1
        store.update_step.side_effect = [None, PersistenceError("boom"), PersistenceError("down")]
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])
        manager = ReorderManager(store, "p1", seq)

        with pytest.raises(PersistenceError) as exc_info:
            manager.move(0, "down")

        assert seq.diverged is True
        assert exc_info.value.details["diverged"] is True
        with pytest.raises(OrderingError):
            manager.move(0, "down")

    def test_first_write_failure_leaves_memory_unchanged(self) -> None:
        store = MagicMock()
        store.bump_version.return_value = 1
        store.update_step.side_effect = PersistenceError("boom")
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])

        with pytest.raises(PersistenceError):
            ReorderManager(store, "p1", seq).move(0, "down")

        assert store.update_step.call_count == 1
        assert [s.id for s in seq] == ["a", "b"]

    def test_missing_second_record_is_compensated(self) -> None:
        """Test a step deleted elsewhere mid-move still reverts the first write."""
        store = MagicMock()
        store.bump_version.return_value = 1
        store.update_step.side_effect = [None, StepNotFoundError("b"), None]
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])

        with pytest.raises(StepNotFoundError):
            ReorderManager(store, "p1", seq).move(0, "down")

        assert store.update_step.call_count == 3
        assert store.update_step.call_args_list[-1].args == ("p1", "a", {"order": 0})
        assert [s.order for s in seq] == [0, 1]
        assert seq.diverged is False

    def test_missing_first_record_on_compensation_marks_divergence(self) -> None:
        store = MagicMock()
        store.bump_version.return_value = 1
        store.update_step.side_effect = [None, PersistenceError("boom"), StepNotFoundError("a")]
        seq = StepSequence([factor("1", order=0, id="a"), factor("1", order=1, id="b")])

        with pytest.raises(PersistenceError):
            ReorderManager(store, "p1", seq).move(0, "down")

        assert seq.diverged is True
