"""Tests for the ordered get-or-create state map."""

from kanban.statemap import StateMap


class CardState:
    def __init__(self):
        self.clicks = 0


class TestStateMap:

    def setup_method(self):
        self.states = StateMap()

    def test_get_creates_once(self):
        first = self.states.get("t1", CardState)
        first.clicks += 1
        again = self.states.get("t1", CardState)
        assert again is first
        assert again.clicks == 1
        assert len(self.states) == 1

    def test_state_survives_between_passes(self):
        for _ in range(3):
            self.states.begin()
            for key in ("a", "b"):
                self.states.get(key, CardState).clicks += 1
        assert [s.clicks for s in self.states] == [3, 3]

    def test_cursor_walks_in_insertion_order(self):
        for key in ("c", "a", "b"):
            self.states.get(key, dict)["key"] = key
        self.states.begin()
        seen = []
        value = self.states.next()
        while value is not None:
            seen.append(value["key"])
            value = self.states.next()
        assert seen == ["c", "a", "b"]
        assert self.states.next() is None

    def test_begin_rewinds(self):
        self.states.get("a", CardState)
        self.states.begin()
        assert self.states.next() is not None
        assert self.states.next() is None
        self.states.begin()
        assert self.states.next() is not None

    def test_keys_and_membership(self):
        self.states.get(2, list)
        self.states.get(1, list)
        assert self.states.keys() == [2, 1]
        assert 1 in self.states
        assert 3 not in self.states
