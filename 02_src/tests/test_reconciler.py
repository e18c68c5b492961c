"""Tests for Reconciler."""

import pytest

from conftest import msg
from dmchat.models import Message, Role, is_local_id
from dmchat.sync import Reconciler


def ids(reconciler: Reconciler) -> list[str]:
    return reconciler.ids()


class TestReset:
    """Tests for Reconciler.reset()."""

    def test_reset_replaces_list(self):
        rec = Reconciler([msg("a")])
        rec.reset([msg("b"), msg("c")])
        assert ids(rec) == ["b", "c"]

    def test_first_duplicate_wins(self):
        rec = Reconciler()
        rec.reset([msg("a", text="first"), msg("b"), msg("a", text="second")])
        assert ids(rec) == ["a", "b"]
        assert rec.get("a").text == "first"


class TestOptimistic:
    """Tests for append_optimistic() / revert_optimistic()."""

    def test_append_returns_handle(self):
        rec = Reconciler([msg("a")])
        handle = rec.append_optimistic(Message(id="", role=Role.USER, text="hi"))
        assert is_local_id(handle)
        assert ids(rec) == ["a", handle]

    def test_append_keeps_given_id(self):
        rec = Reconciler()
        assert rec.append_optimistic(msg("local_x")) == "local_x"

    def test_duplicate_id_rejected(self):
        rec = Reconciler([msg("a")])
        with pytest.raises(ValueError):
            rec.append_optimistic(msg("a"))

    def test_revert_removes_only_handle(self):
        rec = Reconciler([msg("a")])
        handle = rec.append_optimistic(Message(id="", role=Role.USER, text="hi"))
        rec.revert_optimistic(handle)
        assert ids(rec) == ["a"]

    def test_revert_unknown_handle_is_noop(self):
        rec = Reconciler([msg("a")])
        rec.revert_optimistic("local_missing")
        assert ids(rec) == ["a"]


class TestReconcileWithHistory:
    """Tests for reconcile_with_history()."""

    def test_newly_added_is_history_minus_known(self):
        rec = Reconciler([msg("a"), msg("b")])
        result = rec.reconcile_with_history(
            [msg("a"), msg("b"), msg("c"), msg("d")], {"a", "b"}
        )
        assert [m.id for m in result.newly_added] == ["c", "d"]
        assert [m.id for m in result.merged] == ["a", "b", "c", "d"]

    def test_placeholder_is_dropped(self):
        rec = Reconciler([msg("a")])
        handle = rec.append_optimistic(Message(id="", role=Role.USER, text="hi"))
        known = rec.snapshot_ids()

        rec.reconcile_with_history(
            [msg("a"), msg("u1", text="hi"), msg("m1", Role.ASSISTANT)],
            known,
            [handle],
        )

        assert handle not in rec
        assert ids(rec) == ["a", "u1", "m1"]

    def test_known_ids_snapshot_not_current_list(self):
        """A message displayed before the request is never reported as new."""
        rec = Reconciler([msg("a")])
        known = rec.snapshot_ids()
        rec.append_optimistic(msg("local_late"))

        result = rec.reconcile_with_history([msg("a"), msg("b")], known)

        assert [m.id for m in result.newly_added] == ["b"]
        assert ids(rec) == ["a", "local_late", "b"]

    def test_identical_text_is_not_deduplicated(self):
        rec = Reconciler([msg("a", text="Attack!")])
        result = rec.reconcile_with_history(
            [msg("a", text="Attack!"), msg("b", text="Attack!")], {"a"}
        )
        assert [m.id for m in result.newly_added] == ["b"]

    def test_duplicate_ids_in_history_appended_once(self):
        rec = Reconciler()
        result = rec.reconcile_with_history([msg("a"), msg("a")], set())
        assert [m.id for m in result.newly_added] == ["a"]
        assert ids(rec) == ["a"]

    def test_idempotent(self):
        rec = Reconciler([msg("a")])
        handle = rec.append_optimistic(msg("local_1"))
        known = rec.snapshot_ids()
        history = [msg("a"), msg("b"), msg("c")]

        first = rec.reconcile_with_history(history, known, [handle])
        second = rec.reconcile_with_history(history, known, [handle])

        assert [m.id for m in first.merged] == [m.id for m in second.merged]
        assert ids(rec) == ["a", "b", "c"]


class TestMutations:
    """Tests for mutate_text() and remove_many()."""

    def test_mutate_returns_previous_text(self):
        rec = Reconciler([msg("a", text="old")])
        assert rec.mutate_text("a", "new") == "old"
        assert rec.get("a").text == "new"

    def test_mutate_unknown_id(self):
        rec = Reconciler()
        with pytest.raises(KeyError):
            rec.mutate_text("missing", "x")

    def test_remove_many_preserves_order(self):
        rec = Reconciler([msg("a"), msg("b"), msg("c"), msg("d")])
        removed = rec.remove_many({"d", "b", "zzz"})
        assert [m.id for m in removed] == ["b", "d"]
        assert ids(rec) == ["a", "c"]

    def test_last_index_of(self):
        rec = Reconciler(
            [msg("u1"), msg("a1", Role.ASSISTANT), msg("u2"), msg("a2", Role.ASSISTANT)]
        )
        assert rec.last_index_of(Role.USER) == 2
        assert rec.last_index_of(Role.DICE) == -1


class TestPendingDice:
    """Tests for the pending dice helpers."""

    def test_take_and_reinstate_restore_positions(self):
        rec = Reconciler([msg("a")])
        rec.append_optimistic(
            Message(id="local_d1", role=Role.DICE, text="1d6 = 4 { 4 }", pending=True)
        )
        rec.append_optimistic(msg("local_x"))
        rec.append_optimistic(
            Message(id="local_d2", role=Role.DICE, text="1d4 = 2 { 2 }", pending=True)
        )
        before = ids(rec)

        taken = rec.take_pending_dice()

        assert [index for index, _ in taken] == [1, 3]
        assert ids(rec) == ["a", "local_x"]

        rec.reinstate(taken)
        assert ids(rec) == before

    def test_local_dice_ids_excludes_pending(self):
        rec = Reconciler(
            [
                Message(id="local_d1", role=Role.DICE, text="r", pending=True),
                Message(id="local_d2", role=Role.DICE, text="r"),
                msg("local_u"),
            ]
        )
        assert rec.local_dice_ids() == ["local_d2"]
