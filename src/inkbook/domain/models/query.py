from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class SortKey(str, Enum):
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"

    @property
    def descending(self) -> bool:
        return self in (SortKey.DATE_DESC, SortKey.NAME_DESC)

    @property
    def by_name(self) -> bool:
        return self in (SortKey.NAME_ASC, SortKey.NAME_DESC)


@dataclass(frozen=True)
class ListQuery:
    """Filter/sort for an admin list. Changing it resets the list.

    Frozen so two queries with the same filters compare (and hash) equal.
    ``status`` of ``None`` or ``"all"`` means no status filter.
    """

    search: Optional[str] = None
    status: Optional[str] = None
    sort: SortKey = SortKey.DATE_DESC

    def __post_init__(self):
        search = (self.search or "").strip() or None
        object.__setattr__(self, "search", search)
        status = self.status if self.status not in ("", "all") else None
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "sort", SortKey(self.sort))

    def with_search(self, search: Optional[str]) -> "ListQuery":
        return replace(self, search=search)

    def with_status(self, status: Optional[str]) -> "ListQuery":
        return replace(self, status=status)

    def sorted_by(self, sort: SortKey) -> "ListQuery":
        return replace(self, sort=sort)
