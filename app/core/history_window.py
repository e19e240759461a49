"""Bounded window over an ordered history."""

from __future__ import annotations

from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_WINDOW_SIZE = 12


def window(items: Sequence[T], size: int = DEFAULT_WINDOW_SIZE) -> list[T]:
    """
    Return the last ``size`` items of ``items``, oldest first.

    Pure: the input sequence is never mutated. A non-positive size yields [].
    """
    if size <= 0:
        return []
    return list(items[-size:])


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters."""
    return text[:max_chars] if max_chars >= 0 else text
