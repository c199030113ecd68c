from __future__ import annotations

from collections import Counter

from nextroute.annotations.model import TypeRef


class NameAllocator:
    """
    Synthetic variable names, unique per handler.

    One allocator belongs to one build run, so concurrent runs never
    share counters and repeated runs produce the same names.
    """

    def __init__(self) -> None:
        self._counts: Counter[tuple[str, str]] = Counter()

    def allocate(self, handler_key: str, prefix: str) -> str:
        # first use keeps the bare prefix: todo, todo1, todo2, ...
        key = (handler_key, prefix)
        self._counts[key] += 1
        n = self._counts[key]
        return prefix if n == 1 else f"{prefix}{n - 1}"

    def result_name(self, handler_key: str, t: TypeRef | None, name: str = "") -> str:
        if t is not None and t.is_error:
            return "err"
        if name:
            return self.allocate(handler_key, name)
        if t is None or not t.name:
            return self.allocate(handler_key, "_var")
        return self.allocate(handler_key, t.name[:1].lower() + t.name[1:])
