from dataclasses import dataclass, field
from typing import Generic, TypeVar

from .settings import PAGE_SIZE

T = TypeVar("T")


def clamp_page(page) -> int:
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    return max(page, 1)


def page_window(page, page_size: int = PAGE_SIZE) -> tuple[int, int]:
    """Return ``(offset, limit)`` for a 1-based page number."""
    page = clamp_page(page)
    return (page - 1) * page_size, page_size


@dataclass
class Page(Generic[T]):
    rows: list[T] = field(default_factory=list)
    page: int = 1
    page_size: int = PAGE_SIZE

    @property
    def has_more(self) -> bool:
        # a short page is the only end-of-list signal; an exact multiple needs one empty page
        return len(self.rows) >= self.page_size

    def as_dict(self, dump=None) -> dict:
        rows = [dump(r) for r in self.rows] if dump else list(self.rows)
        return {"rows": rows, "page": self.page, "page_size": self.page_size, "has_more": self.has_more}
