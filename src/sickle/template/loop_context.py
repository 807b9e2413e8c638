"""Loop iteration metadata for ``@foreach`` and ``@forelse`` blocks."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sickle.environment.exceptions import LoopError


@dataclass(slots=True)
class LoopFrame:
    """Cardinality and zero-based progress of one active loop."""

    count: int
    index: int = 0


class LoopStack:
    """Loop metadata accessible as ``loop`` inside ``@foreach`` blocks.

    Holds one :class:`LoopFrame` per active loop, innermost first. Every
    render gets its own instance, so concurrent renders never share loop
    state. All properties read the innermost frame and raise
    :class:`LoopError` when no loop is active.

    Properties:
        index: 0-based iteration count (0, 1, 2, ...)
        iteration: 1-based iteration count (1, 2, 3, ...)
        first: True on the first iteration
        last: True on the final iteration
        remaining: Iterations left after the current one
        count: Total number of items in the innermost loop
        depth: Number of active loops (1 inside a single loop)

    Example:
            ```
            <ul>
            @foreach(items as item)
                <li>{{ loop.iteration }}/{{ loop.count }}: {{ item }}
                @if(loop.last) (last) @endif</li>
            @endforeach
            </ul>
            ```

    Compiled loops drive the stack through :meth:`iterate`, which calls
    :meth:`start`, :meth:`increment` and :meth:`end` in that order.
    """

    __slots__ = ("_frames",)

    def __init__(self) -> None:
        self._frames: list[LoopFrame] = []

    def start(self, items: Iterable[Any]) -> Sequence[Any]:
        """Push a frame sized to ``items`` and return them as a sequence.

        Iterators and generators are materialized so their length is known.
        """
        if not isinstance(items, Sequence):
            items = list(items)
        self._frames.insert(0, LoopFrame(count=len(items)))
        return items

    def increment(self) -> None:
        """Advance the innermost loop by one item."""
        self._top().index += 1

    def end(self) -> None:
        """Pop the innermost frame."""
        if self._frames:
            del self._frames[0]

    @contextmanager
    def iterate(self, items: Iterable[Any]) -> Iterator[Iterator[Any]]:
        """Scope a loop over ``items``.

        The frame is pushed on enter and popped on exit, including exits
        through ``break`` or an exception. The yielded iterator advances the
        frame before every item after the first, so ``continue`` keeps the
        index in step.
        """
        sequence = self.start(items)
        try:
            yield self._advance(sequence)
        finally:
            self.end()

    def _advance(self, sequence: Sequence[Any]) -> Iterator[Any]:
        for position, item in enumerate(sequence):
            if position:
                self.increment()
            yield item

    def _top(self) -> LoopFrame:
        if not self._frames:
            raise LoopError()
        return self._frames[0]

    @property
    def index(self) -> int:
        """0-based iteration count."""
        return self._top().index

    @property
    def iteration(self) -> int:
        """1-based iteration count."""
        return self._top().index + 1

    @property
    def first(self) -> bool:
        """True if this is the first iteration."""
        return self._top().index == 0

    @property
    def last(self) -> bool:
        """True if this is the last iteration."""
        frame = self._top()
        return frame.index + 1 == frame.count

    @property
    def remaining(self) -> int:
        """Iterations left after the current one."""
        frame = self._top()
        return frame.count - frame.index - 1

    @property
    def count(self) -> int:
        """Total number of items in the innermost loop."""
        return self._top().count

    @property
    def depth(self) -> int:
        """Number of active loops."""
        return len(self._frames)

    @property
    def parent(self) -> Any:
        """Not supported: outer loops cannot be inspected."""
        raise LoopError("loop.parent is not supported")

    def __repr__(self) -> str:
        if not self._frames:
            return "<LoopStack (no active loop)>"
        return f"<LoopStack {self.iteration}/{self.count} depth={self.depth}>"
