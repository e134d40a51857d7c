from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HabitFilters:
    view: str = "all"
    search: str | None = None
    include_archived: bool = False

    def matches(self, habit) -> bool:
        if self.view == "habits" and habit.is_task:
            return False
        if self.view == "tasks" and not habit.is_task:
            return False
        if habit.archived and not self.include_archived:
            return False
        if self.search:
            needle = self.search.lower()
            return needle in habit.name.lower() or needle in habit.description.lower()
        return True
