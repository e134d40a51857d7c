from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Protocol

from scheduler.domain.entities import HabitEntity, HabitSchedule
from scheduler.domain.enums import FREQUENCY_ORDER, Frequency, WeekDay
from scheduler.domain.errors import ParseError
from scheduler.domain.filters import HabitFilters

from .clock import Clock, SystemClock, local_date, today
from .completions import DailyCompletionIndex, aggregate, completions_on_day, recent_days
from .due_dates import frequency_class, is_due, is_overdue
from .recurrence_parser import parse_schedule
from .recurrence_serializer import decode_schedule, encode_schedule, render_frequency

logger = logging.getLogger(__name__)


class HabitRepository(Protocol):
    def list_habits(self, filters: HabitFilters) -> list[HabitEntity]: ...

    def get_habit(self, habit_id: str) -> HabitEntity | None: ...

    def create_habit(self, data: dict) -> HabitEntity: ...

    def update_habit(self, habit_id: str, data: dict) -> HabitEntity | None: ...


class HabitService:
    def __init__(
        self,
        repo: HabitRepository,
        clock: Clock | None = None,
        timezone: str = "UTC",
        week_start_day: WeekDay = WeekDay.SUNDAY,
    ) -> None:
        self._repo = repo
        self._clock = clock or SystemClock()
        self.timezone = timezone
        self.week_start_day = week_start_day

    def list_habits(self, filters: HabitFilters) -> list[HabitEntity]:
        return self._repo.list_habits(filters)

    def get_habit(self, habit_id: str) -> HabitEntity | None:
        return self._repo.get_habit(habit_id)

    def create_habit(self, data: dict) -> HabitEntity:
        return self._repo.create_habit(self._normalize_data(data, is_task=bool(data.get("is_task"))))

    def update_habit(self, habit_id: str, data: dict) -> HabitEntity | None:
        habit = self._repo.get_habit(habit_id)
        if not habit:
            return None
        return self._repo.update_habit(habit_id, self._normalize_data(data, is_task=habit.is_task))

    def complete_habit(self, habit_id: str) -> HabitEntity | None:
        habit = self._repo.get_habit(habit_id)
        if not habit or habit.archived:
            return None
        now = self._clock.now(self.timezone)
        done_today = completions_on_day(habit.completions, self.timezone, today(now, self.timezone))
        if done_today >= habit.target:
            logger.info("Habit %s already completed %s/%s today", habit_id, done_today, habit.target)
            return habit
        completions = (*habit.completions, now.isoformat())
        logger.info("Completed habit %s (%s/%s)", habit_id, done_today + 1, habit.target)
        return self._repo.update_habit(habit_id, {"completions": completions})

    def undo_complete(self, habit_id: str) -> HabitEntity | None:
        habit = self._repo.get_habit(habit_id)
        if not habit:
            return None
        current_day = today(self._clock.now(self.timezone), self.timezone)
        completions = list(habit.completions)
        for index in range(len(completions) - 1, -1, -1):
            if local_date(completions[index], self.timezone) == current_day:
                del completions[index]
                logger.info("Undid last completion of habit %s", habit_id)
                return self._repo.update_habit(habit_id, {"completions": tuple(completions)})
        return habit

    def schedule_of(self, habit: HabitEntity) -> HabitSchedule:
        return decode_schedule(habit.frequency, habit.is_task, self.timezone)

    def describe(self, habit: HabitEntity) -> str:
        return render_frequency(habit.frequency, habit.is_task, self.timezone)

    def due_today(self) -> tuple[list[HabitEntity], list[HabitEntity]]:
        """Tasks due today or overdue, and habits due today; archived items excluded."""
        now = self._clock.now(self.timezone)
        current_day = today(now, self.timezone)
        tasks: list[HabitEntity] = []
        habits: list[HabitEntity] = []
        for habit in self._repo.list_habits(HabitFilters()):
            if habit.archived:
                continue
            try:
                schedule = self.schedule_of(habit)
            except ParseError as exc:
                logger.warning("Skipping %s with unreadable frequency: %s", habit.id, exc.message)
                continue
            if habit.is_task:
                completed = len(habit.completions) >= habit.target
                if is_due(schedule, self.timezone, current_day) or is_overdue(
                    schedule, self.timezone, now, completed=completed
                ):
                    tasks.append(habit)
            elif is_due(schedule, self.timezone, current_day):
                habits.append(habit)
        return tasks, habits

    def frequency_of(self, habit: HabitEntity) -> Frequency:
        try:
            return frequency_class(self.schedule_of(habit))
        except ParseError:
            return Frequency.DAILY

    def overview_order(self, items: list[HabitEntity]) -> list[HabitEntity]:
        current_day = today(self._clock.now(self.timezone), self.timezone)

        def key(habit: HabitEntity) -> tuple:
            done = completions_on_day(habit.completions, self.timezone, current_day) >= habit.target
            return (
                not habit.pinned,
                done,
                FREQUENCY_ORDER.index(self.frequency_of(habit)),
                -habit.coin_reward,
                -habit.target,
            )

        return sorted(items, key=key)

    def completion_index(self) -> DailyCompletionIndex:
        habits = self._repo.list_habits(HabitFilters(include_archived=True))
        return aggregate(
            ((habit.id, habit.completions, habit.target_completions) for habit in habits),
            self.timezone,
        )

    def streak_series(self, days: int = 7) -> list[dict]:
        habits = self._repo.list_habits(HabitFilters(include_archived=True))
        task_ids = {habit.id for habit in habits if habit.is_task}
        index = self.completion_index()
        series = []
        for day in recent_days(today(self._clock.now(self.timezone), self.timezone), days):
            completed = index.items_on(day)
            series.append({
                "date": day,
                "habits": len(completed - task_ids),
                "tasks": len(completed & task_ids),
            })
        return series

    def heatmap(self, days: int = 30) -> dict[date, int]:
        window = set(recent_days(today(self._clock.now(self.timezone), self.timezone), days + 1))
        return {day: count for day, count in self.completion_index().heatmap().items() if day in window}

    def week_days(self, day: date) -> list[date]:
        """Display week containing `day`, starting on the configured week-start day."""
        offset = (day.weekday() - self.week_start_day.python_weekday) % 7
        first = day - timedelta(days=offset)
        return [first + timedelta(days=index) for index in range(7)]

    def _normalize_data(self, data: dict, is_task: bool) -> dict:
        normalized = dict(data)
        when = normalized.pop("when", None)
        if when is not None:
            now = self._clock.now(self.timezone)
            result = parse_schedule(when, self.timezone, now, is_recurring=not is_task)
            if not result.ok:
                logger.debug("Rejected schedule %r: %s", when, result.message)
            normalized["frequency"] = encode_schedule(result.unwrap())
        target = normalized.get("target_completions")
        if target is not None:
            if target < 1:
                raise ValueError(f"target_completions must be >= 1, got {target}")
            if target == 1:
                normalized["target_completions"] = None
        return normalized
