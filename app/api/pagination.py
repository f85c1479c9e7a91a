"""
Page parameters shared by listing endpoints.

``pageNumber`` defaults to 1 and ``pageSize`` to 10; out-of-range values
are clamped (page >= 1, 1 <= size <= 100) rather than rejected.
"""

import math
from dataclasses import dataclass

from fastapi import Query

from app.schemas.common import PaginationMeta

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page:
    number: int
    size: int

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size

    def meta(self, total: int) -> PaginationMeta:
        total_pages = math.ceil(total / self.size) if total else 0
        return PaginationMeta(
            current_page=self.number,
            page_size=self.size,
            total_items=total,
            total_pages=total_pages,
            has_next_page=self.number < total_pages,
            has_previous_page=self.number > 1,
            next_page=self.number + 1 if self.number < total_pages else None,
            previous_page=self.number - 1 if self.number > 1 else None,
        )


def page_params(
    page_number: int = Query(1, alias="pageNumber"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
) -> Page:
    return Page(
        number=max(1, page_number),
        size=min(MAX_PAGE_SIZE, max(1, page_size)),
    )
