"""Paging and read-side deduplication helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Iterable, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200


@dataclass
class Page(Generic[T]):
    """One page of a listing plus the totals needed for the pagination envelope."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


def normalize_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    """Clamp page/limit to sane bounds."""
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    return page, limit


def dedupe_by_key(items: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Keep the first item for every distinct key, preserving order."""
    seen: set[Hashable] = set()
    result: list[T] = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        result.append(item)
    return result
