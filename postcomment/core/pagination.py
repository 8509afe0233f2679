"""Keyset (cursor) pagination over ``(created_at DESC, id DESC)``.

A page boundary is a single reference row. The next page holds rows strictly
older than it:

    created_at < ref.created_at OR (created_at == ref.created_at AND id < ref.id)

Ids are unique, so the composite key is a strict total order: rows sharing a
timestamp are never duplicated or skipped across pages, and rows inserted
after a page was served never shift what that page or the following ones
contain.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, TypeVar

from postcomment.core.exceptions import NotFoundError
from postcomment.core.ids import MAX_ID


PAGE_SIZE = 10
SENTINEL_ID = MAX_ID


@dataclass(frozen=True, order=True)
class CursorKey:
    """Composite ordering key; tuple comparison matches the store's order."""

    created_at: datetime
    id: int


class Keyed(Protocol):
    @property
    def cursor_key(self) -> CursorKey: ...


K = TypeVar("K", bound=Keyed)
K_co = TypeVar("K_co", bound=Keyed, covariant=True)


class PageScope(Protocol[K_co]):
    """The rows one feed walks (all posts, one author's posts, siblings)."""

    entity: str

    async def resolve(self, item_id: int) -> K_co | None:
        """Reference row by id, or None when absent or outside the scope."""
        ...

    async def fetch_older(self, bound: CursorKey | None, limit: int) -> list[K_co]:
        """Up to ``limit`` rows older than ``bound`` (newest rows when None)."""
        ...


def is_sentinel(reference_id: int) -> bool:
    return reference_id == SENTINEL_ID


def order_page(items: Iterable[K], bound: CursorKey | None, page_size: int) -> list[K]:
    """Keep rows strictly older than ``bound``, newest first, at most a page."""
    candidates = [
        item for item in items if bound is None or item.cursor_key < bound
    ]
    candidates.sort(key=lambda item: item.cursor_key, reverse=True)
    return candidates[:page_size]


class CursorPaginator:
    """Computes the next page of a scope relative to a reference row."""

    def __init__(self, page_size: int = PAGE_SIZE):
        self.page_size = page_size

    async def next_page(self, scope: PageScope[K], reference_id: int) -> list[K]:
        """Page of rows older than ``reference_id`` (latest page for sentinel).

        Raises:
            NotFoundError: The reference does not resolve within the scope.
        """
        bound: CursorKey | None = None
        if not is_sentinel(reference_id):
            reference = await scope.resolve(reference_id)
            if reference is None:
                raise NotFoundError(scope.entity, reference_id)
            bound = reference.cursor_key

        rows = await scope.fetch_older(bound, self.page_size)
        return order_page(rows, bound, self.page_size)
