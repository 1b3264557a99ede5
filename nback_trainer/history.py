from __future__ import annotations

from collections import deque


class EventHistory:
    """Bounded lag buffer holding the ``n_back + 1`` most recent stimuli."""

    def __init__(self, n_back: int) -> None:
        if n_back < 1:
            raise ValueError("n_back must be >= 1")
        self._n_back = int(n_back)
        self._values: deque[int] = deque(maxlen=self._n_back + 1)

    @property
    def n_back(self) -> int:
        return self._n_back

    @property
    def capacity(self) -> int:
        return self._n_back + 1

    def __len__(self) -> int:
        return len(self._values)

    def push(self, value: int) -> None:
        self._values.append(int(value))

    def lookback(self, n: int) -> int | None:
        """Value ``n`` entries before the most recent, or None if not available yet.

        ``lookback(0)`` is the most recent value.
        """

        if n < 0 or n > self._n_back:
            return None
        if len(self._values) < n + 1:
            return None
        return self._values[-1 - n]

    def values(self) -> tuple[int, ...]:
        return tuple(self._values)

    def clear(self) -> None:
        self._values.clear()
