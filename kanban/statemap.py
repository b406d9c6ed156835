"""
Ordered get-or-create state map.

Consumers that redraw a list of projects or tickets every frame need a
piece of state per item that survives between frames. StateMap keeps that
state keyed by a stable identifier, remembers first-insertion order, and
offers a cursor that is rewound with ``begin()`` each pass:

    states.begin()
    for ticket in stage.tickets:
        state = states.get(ticket.ticket_id, CardState)
    ...
    states.begin()
    while (state := states.next()) is not None:
        ...
"""
from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class StateMap(Generic[K, V]):
    """Grow-only map from stable key to owned state, in insertion order."""

    def __init__(self):
        self._data: Dict[K, V] = {}
        self._index: List[K] = []
        self._current = 0

    def begin(self) -> None:
        """Rewind the iteration cursor. Call once per pass."""
        self._current = 0

    def get(self, key: K, factory: Callable[[], V]) -> V:
        """Return the state for ``key``, creating it with ``factory`` on first use."""
        if key not in self._data:
            self._data[key] = factory()
            self._index.append(key)
        return self._data[key]

    def next(self) -> Optional[V]:
        """Advance the cursor; None once every entry has been visited."""
        if self._current >= len(self._index):
            return None
        value = self._data[self._index[self._current]]
        self._current += 1
        return value

    def keys(self) -> List[K]:
        return list(self._index)

    def __iter__(self) -> Iterator[V]:
        return (self._data[k] for k in self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._data
