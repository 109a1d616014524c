# orderdesk/pagination.py
"""Client-driven paging and ordering over record collections.

Untrusted query values become a ``PaginationRequest``; a ``Sorter`` turns the
requested field into a ``SortSpec`` from a closed allow-list; ``paginate``
clamps the request against the real record count and yields the
offset/limit window the store reads.
"""
import math
import os
from dataclasses import dataclass, field
from operator import itemgetter
from typing import Any, Callable, Dict, Generic, List, NamedTuple, TypeVar

from .errors import InvalidArgument

T = TypeVar("T")

DEFAULT_PAGE_SIZE = int(os.getenv("APP_DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("APP_MAX_PAGE_SIZE", "500"))


@dataclass(frozen=True)
class PaginationRequest:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort_field: str = "id"
    descending: bool = False

    def __post_init__(self):
        # bool is an int subclass; reject it explicitly
        for name in ("page", "page_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidArgument(f"{name} must be an integer")
        if self.page < 1:
            raise InvalidArgument("page must be >= 1")
        if self.page_size < 1:
            raise InvalidArgument("page_size must be >= 1")
        if self.page_size > MAX_PAGE_SIZE:
            raise InvalidArgument(f"page_size must be <= {MAX_PAGE_SIZE}")
        if not isinstance(self.sort_field, str) or not self.sort_field:
            raise InvalidArgument("sort_field must be a non-empty string")


class SortKey(NamedTuple):
    column: str
    key: Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class SortSpec:
    """A resolved ordering: primary column plus the identity tie-breaker."""

    field: str
    column: str
    key: Callable[[Dict[str, Any]], Any]
    tiebreak_column: str
    tiebreak_key: Callable[[Dict[str, Any]], Any]
    descending: bool = False

    @property
    def direction(self) -> str:
        return "DESC" if self.descending else "ASC"

    def apply(self, records):
        """Sort already-fetched records the same way the store's ORDER BY does."""
        return sorted(
            records,
            key=lambda r: (self.key(r), self.tiebreak_key(r)),
            reverse=self.descending,
        )


class Sorter:
    """Closed mapping from client field names to ordering keys."""

    def __init__(self, fields: Dict[str, SortKey], tiebreak: str = "id"):
        if tiebreak not in fields:
            raise ValueError(f"tie-breaker {tiebreak!r} must be a sortable field")
        self._fields = dict(fields)
        self._tiebreak = tiebreak

    @property
    def allowed(self):
        return sorted(self._fields)

    def resolve(self, field_name: str, descending: bool = False) -> SortSpec:
        sort_key = self._fields.get(field_name)
        if sort_key is None:
            raise InvalidArgument(
                f"cannot sort by {field_name!r}; allowed: {', '.join(self.allowed)}"
            )
        tiebreak = self._fields[self._tiebreak]
        return SortSpec(
            field=field_name,
            column=sort_key.column,
            key=sort_key.key,
            tiebreak_column=tiebreak.column,
            tiebreak_key=tiebreak.key,
            descending=bool(descending),
        )


ORDER_SORTS = Sorter({
    "id": SortKey("id", itemgetter("id")),
    "ts": SortKey("ts", itemgetter("ts")),
    "status": SortKey("status", itemgetter("status")),
})


@dataclass(frozen=True)
class PageWindow:
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
    offset: int
    limit: int


def paginate(request: PaginationRequest, total_count: int) -> PageWindow:
    if total_count < 0:
        raise ValueError("total_count must be >= 0")

    total_pages = 0 if total_count == 0 else math.ceil(total_count / request.page_size)
    page_size = min(request.page_size, total_count) if total_count > 0 else request.page_size
    current_page = min(request.page, max(total_pages, 1))
    offset = page_size * (current_page - 1)

    return PageWindow(
        total_count=total_count,
        total_pages=total_pages,
        current_page=current_page,
        page_size=page_size,
        offset=offset,
        limit=page_size,
    )


@dataclass
class PaginationResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_pages: int = 0

    @classmethod
    def from_window(cls, items: List[T], window: PageWindow) -> "PaginationResult[T]":
        return cls(
            items=list(items),
            total_count=window.total_count,
            current_page=window.current_page,
            page_size=window.page_size,
            total_pages=window.total_pages,
        )

    def metadata(self) -> Dict[str, int]:
        return {
            "totalCount": self.total_count,
            "pageSize": self.page_size,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
        }
