"""In-place filtering of lists."""

from __future__ import annotations

from typing import Callable, TypeVar

T = TypeVar("T")


def compact(items: list[T], keep: Callable[[T], bool]) -> list[T]:
    """Drop the elements for which ``keep`` is false, in place, and return the list."""
    items[:] = [item for item in items if keep(item)]
    return items