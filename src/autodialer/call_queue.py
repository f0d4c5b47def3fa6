from collections import deque
from typing import Iterator

from autodialer.errors import EmptyQueue


class CallQueue:
    """Ordered numbers waiting to be dialed.

    Duplicates are allowed. Not thread-safe: the sequencer owns the queue
    and serializes every access through its worker.
    """

    def __init__(self, numbers=()):
        self._numbers: deque[str] = deque(numbers)

    def append(self, number: str) -> None:
        self._numbers.append(number)

    def remove(self, number: str) -> None:
        """Remove the first occurrence of number. Absent numbers are ignored."""
        try:
            self._numbers.remove(number)
        except ValueError:
            pass

    def clear(self) -> None:
        self._numbers.clear()

    def pop_front(self) -> str:
        if not self._numbers:
            raise EmptyQueue()
        return self._numbers.popleft()

    def is_empty(self) -> bool:
        return not self._numbers

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._numbers)

    def __len__(self) -> int:
        return len(self._numbers)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._numbers))

    def __contains__(self, number: object) -> bool:
        return number in self._numbers

    def __repr__(self) -> str:
        return f"CallQueue({list(self._numbers)!r})"
