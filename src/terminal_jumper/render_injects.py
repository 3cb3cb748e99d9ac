"""Deferred strings and callbacks emitted at fixed points of a render pass.

Entries are keyed by tags such as ``"before:erase:menu"`` or
``"menu:after:scroll-bar-y"``.  A flush consumes every entry whose tag
matches a pattern, in insertion order, exactly once.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from typing import Union

InjectValue = Union[str, Callable[[], Union[str, None]]]
Pattern = Union[str, "re.Pattern[str]"]


class RenderInjects:
    """Ordered tag -> string/callback queue."""

    def __init__(self) -> None:
        self._entries: dict[str, InjectValue] = {}

    def __contains__(self, tag: str) -> bool:
        return tag in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def has(self, tag: str) -> bool:
        return tag in self._entries

    def get(self, tag: str) -> InjectValue | None:
        return self._entries.get(tag)

    def set(self, tag: str, value: InjectValue) -> None:
        """Queue *value* under *tag*, replacing any earlier value."""
        self._entries[tag] = value

    def delete(self, tag: str) -> bool:
        return self._entries.pop(tag, None) is not None

    def inject(self, pattern: Pattern) -> str:
        """Consume every entry whose tag matches *pattern* and join them.

        Callables are invoked at flush time; a ``None`` result counts as
        an empty string.
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        out: list[str] = []
        for tag in [t for t in self._entries if regex.search(t)]:
            value = self._entries.pop(tag)
            if callable(value):
                out.append(value() or "")
            else:
                out.append(value)
        return "".join(out)

    def remove(self, pattern: Pattern) -> None:
        """Drop every entry whose tag matches *pattern* without emitting it."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        for tag in [t for t in self._entries if regex.search(t)]:
            del self._entries[tag]

    def clear(self) -> None:
        self._entries.clear()
