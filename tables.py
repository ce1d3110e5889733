"""Admin table view state: row selection and column sorting.

List endpoints use ``SortState`` to parse and echo ``sort``/``order``;
``RowSelection`` backs bulk-action requests built from a table page.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

ASC = "asc"
DESC = "desc"


@dataclass
class SortState:
    column: Optional[str] = None
    direction: str = DESC

    def click(self, column: str) -> "SortState":
        """Same column flips direction; a new column starts descending."""
        if column == self.column:
            self.direction = ASC if self.direction == DESC else DESC
        else:
            self.column = column
            self.direction = DESC
        return self

    def mongo_sort(self, allowed: Iterable[str], default: str = "createdAt") -> List[Tuple[str, int]]:
        column = self.column if self.column in set(allowed) else default
        return [(column, 1 if self.direction == ASC else -1)]

    def as_dict(self) -> dict:
        return {"field": self.column, "order": self.direction}

    @classmethod
    def from_query(cls, sort: Optional[str], order: Optional[str]) -> "SortState":
        return cls(column=sort, direction=ASC if order == ASC else DESC)


@dataclass
class RowSelection:
    visible: List[str] = field(default_factory=list)
    selected: Set[str] = field(default_factory=set)

    @property
    def all_selected(self) -> bool:
        return bool(self.visible) and all(row in self.selected for row in self.visible)

    def toggle(self, row_id: str) -> None:
        if row_id in self.selected:
            self.selected.discard(row_id)
        else:
            self.selected.add(row_id)

    def toggle_all(self) -> None:
        if self.all_selected:
            self.selected.difference_update(self.visible)
        else:
            self.selected.update(self.visible)

    def set_page(self, rows: Iterable[str]) -> None:
        """Show a new page; selections that left the page are dropped."""
        self.visible = list(rows)
        self.selected &= set(self.visible)

    def ids(self) -> List[str]:
        return [row for row in self.visible if row in self.selected]
