"""Tests for the bounded undo/redo history."""

import pytest
from hypothesis import given, strategies as st

from sheetgraph.core import HistoryStore, MAX_HISTORY_SIZE

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=5),
    lambda children: st.lists(children, max_size=3) | st.dictionaries(st.text(max_size=3), children, max_size=3),
    max_leaves=8,
)


class TestSet:
    def test_set_records_and_moves_cursor(self):
        history = HistoryStore(0)
        assert history.set(1) is True
        assert history.current == 1
        assert history.cursor == 1
        assert len(history) == 2

    def test_set_accepts_function_of_current(self):
        history = HistoryStore({"count": 1})
        history.set(lambda v: {**v, "count": v["count"] + 1})
        assert history.current == {"count": 2}

    def test_equal_value_is_noop(self):
        history = HistoryStore({"a": [1, 2]})
        assert history.set({"a": [1, 2]}) is False
        assert len(history) == 1
        assert not history.can_undo

    def test_bool_is_not_equal_to_number(self):
        history = HistoryStore({"value": 1})
        assert history.set({"value": True}) is True
        assert history.set({"value": [True, 0]}) is True
        assert history.set({"value": [1, False]}) is True
        assert len(history) == 4

    def test_failing_function_leaves_store_untouched(self):
        history = HistoryStore(1)
        history.set(2)

        def boom(_):
            raise RuntimeError("derivation failed")

        with pytest.raises(RuntimeError):
            history.set(boom)
        assert history.current == 2
        assert len(history) == 2

    def test_set_after_undo_discards_future(self):
        history = HistoryStore("a")
        history.set("b")
        history.set("c")
        history.undo()
        history.undo()

        history.set("x")
        assert history.current == "x"
        assert not history.can_redo
        assert len(history) == 2
        history.undo()
        assert history.current == "a"

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryStore(0, capacity=0)

    def test_capacity_one_never_undoes(self):
        history = HistoryStore(0, capacity=1)
        history.set(1)
        assert history.current == 1
        assert not history.can_undo


class TestUndoRedo:
    def test_undo_and_redo_on_fresh_store(self):
        history = HistoryStore(0)
        assert history.undo() is False
        assert history.redo() is False
        assert history.current == 0

    def test_round_trip(self):
        history = HistoryStore(0)
        history.set(1)
        history.set(2)
        assert history.undo() and history.current == 1
        assert history.undo() and history.current == 0
        assert history.redo() and history.current == 1
        assert history.can_undo and history.can_redo

    def test_reset_clears_timeline(self):
        history = HistoryStore(0)
        history.set(1)
        history.reset(5)
        assert history.current == 5
        assert len(history) == 1
        assert not history.can_undo and not history.can_redo


class TestEviction:
    def test_default_capacity_keeps_ten_undo_steps(self):
        history = HistoryStore(0)
        for i in range(1, 16):
            history.set(i)

        assert len(history) == MAX_HISTORY_SIZE
        undos = 0
        while history.undo():
            undos += 1
        assert undos == MAX_HISTORY_SIZE - 1
        # 0..4 were evicted
        assert history.current == 15 - (MAX_HISTORY_SIZE - 1)

    def test_initial_value_retained_until_capacity(self):
        history = HistoryStore("start", capacity=3)
        history.set("a")
        history.set("b")
        history.undo()
        history.undo()
        assert history.current == "start"


class TestProperties:
    @given(json_values, json_values)
    def test_undo_restores_previous_distinct_value(self, v1, v2):
        if v1 == v2:
            return
        history = HistoryStore(None)
        history.set(v1)
        history.set(v2)
        assert history.can_undo
        history.undo()
        assert history.current == v1

    @given(json_values)
    def test_setting_same_value_twice_does_not_grow(self, v):
        history = HistoryStore(object())
        history.set(v)
        size = len(history)
        history.set(v)
        assert len(history) == size

    @given(st.integers(min_value=1, max_value=12), st.integers(min_value=0, max_value=40))
    def test_undo_reaches_earliest_retained_snapshot(self, capacity, pushes):
        history = HistoryStore(-1, capacity=capacity)
        for i in range(pushes):
            history.set(i)

        assert len(history) == min(pushes + 1, capacity)
        for _ in range(capacity - 1):
            history.undo()

        retained = [-1, *range(pushes)][-capacity:]
        assert history.current == retained[0]
        assert not history.can_undo
