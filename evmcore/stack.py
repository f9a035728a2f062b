"""The EVM operand stack."""

from __future__ import annotations

from typing import Iterable

from evmcore.state import ExecutionError, StatusCode

#: The maximum number of items on the stack.
STACK_LIMIT = 1024


class Stack:
    """A stack of 256-bit words; index 0 is the top item.

    Pushing does not check the stack limit; reading past the bottom raises
    ``ExecutionError`` with ``STACK_UNDERFLOW``.
    """

    def __init__(self, items: Iterable[int] = ()) -> None:
        self._items = list(items)

    def push(self, item: int) -> None:
        """Put an item on top of the stack."""
        self._items.append(item)

    def pop(self) -> int:
        """Remove and return the top item."""
        if not self._items:
            raise ExecutionError(StatusCode.STACK_UNDERFLOW)
        return self._items.pop()

    def top(self) -> int:
        """Return the top item."""
        return self[0]

    def set_top(self, value: int) -> None:
        """Replace the top item."""
        self[0] = value

    def _position(self, index: int) -> int:
        if not 0 <= index < len(self._items):
            raise ExecutionError(StatusCode.STACK_UNDERFLOW)
        return len(self._items) - 1 - index

    def __getitem__(self, index: int) -> int:
        return self._items[self._position(index)]

    def __setitem__(self, index: int, value: int) -> None:
        self._items[self._position(index)] = value

    def __len__(self) -> int:
        return len(self._items)

    def reset(self) -> None:
        """Empty the stack."""
        self._items.clear()

    def __repr__(self) -> str:
        return f"Stack({self._items!r})"