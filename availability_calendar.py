"""
Rental-date picker for the dress detail page.

``AvailabilityCalendar`` holds the month being displayed and the current
selection (zero, one or two dates). Clicks follow these rules:

- unavailable or past days are disabled, clicking them does nothing;
- with nothing selected, or a full range selected, the click starts over;
- with one date selected the click closes a range, ordered earliest first.
  A range whose length in days falls outside ``[min_rental_days,
  max_rental_days]`` is dropped and the clicked day becomes the new start.

A selection handed back by the client is re-checked against the same rules
and discarded when it could not have been produced by clicks.
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
WEEKDAY_HEADERS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


@dataclass
class DayCell:
    day: date
    unavailable: bool
    past: bool
    selected: bool
    in_range: bool

    @property
    def disabled(self) -> bool:
        return self.unavailable or self.past

    def as_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "day": self.day.day,
            "unavailable": self.unavailable,
            "past": self.past,
            "selected": self.selected,
            "in_range": self.in_range,
            "disabled": self.disabled,
        }


def span_days(start: date, end: date) -> int:
    return (end - start).days


def rental_total(price: float, selection: List[date]) -> float:
    """Daily price times rented days; a partial selection quotes one day."""
    if len(selection) < 2:
        return price
    return price * max(span_days(selection[0], selection[1]), 0)


class AvailabilityCalendar:
    def __init__(
        self,
        unavailable_dates: Iterable[str],
        min_rental_days: int,
        max_rental_days: int,
        on_select: Optional[Callable[[List[date]], None]] = None,
        today: Optional[date] = None,
        month: Optional[date] = None,
        selected: Optional[List[date]] = None,
    ):
        self.unavailable = {date.fromisoformat(d[:10]) for d in unavailable_dates}
        self.min_rental_days = min_rental_days
        self.max_rental_days = max_rental_days
        self.on_select = on_select
        self.today = today or date.today()
        start = month or self.today
        self.current_month = date(start.year, start.month, 1)
        self._selected: List[date] = self._restore(selected or [])

    def _within_bounds(self, start: date, end: date) -> bool:
        days = span_days(start, end)
        return self.min_rental_days <= days <= self.max_rental_days

    def _restore(self, selected: List[date]) -> List[date]:
        days = list(selected)
        if len(days) > 2 or any(self.is_unavailable(d) or self.is_past(d) for d in days):
            return []
        if len(days) == 2 and (days[0] > days[1] or not self._within_bounds(days[0], days[1])):
            return []
        return days

    @property
    def selection(self) -> List[date]:
        return list(self._selected)

    @property
    def rental_days(self) -> int:
        if len(self._selected) != 2:
            return 0
        return span_days(self._selected[0], self._selected[1])

    def is_unavailable(self, day: date) -> bool:
        return day in self.unavailable

    def is_past(self, day: date) -> bool:
        return day < self.today

    def is_selected(self, day: date) -> bool:
        return day in self._selected

    def is_in_range(self, day: date) -> bool:
        if len(self._selected) != 2:
            return False
        return self._selected[0] <= day <= self._selected[1]

    def click(self, day: date) -> bool:
        """Apply a click on ``day``. Returns False when the day is disabled."""
        if self.is_unavailable(day) or self.is_past(day):
            return False

        if len(self._selected) == 1:
            first = self._selected[0]
            selection = [day, first] if day < first else [first, day]
            if not self._within_bounds(selection[0], selection[1]):
                selection = [day]
        else:
            selection = [day]

        self._selected = selection
        if self.on_select is not None:
            self.on_select(self.selection)
        return True

    def clear(self) -> None:
        self._selected = []

    # ---------- Month navigation ----------

    @property
    def month_label(self) -> str:
        return f"{MONTH_NAMES[self.current_month.month - 1]} {self.current_month.year}"

    def previous_month(self) -> date:
        year, month = self.current_month.year, self.current_month.month - 1
        if month == 0:
            year, month = year - 1, 12
        self.current_month = date(year, month, 1)
        return self.current_month

    def next_month(self) -> date:
        year, month = self.current_month.year, self.current_month.month + 1
        if month == 13:
            year, month = year + 1, 1
        self.current_month = date(year, month, 1)
        return self.current_month

    def month_grid(self) -> List[Optional[DayCell]]:
        """Sunday-first cells for the current month; ``None`` pads the first week."""
        year, month = self.current_month.year, self.current_month.month
        first_weekday, days_in_month = monthrange(year, month)
        # monthrange counts Monday as 0
        leading = (first_weekday + 1) % 7
        cells: List[Optional[DayCell]] = [None] * leading
        for number in range(1, days_in_month + 1):
            day = date(year, month, number)
            cells.append(DayCell(
                day=day,
                unavailable=self.is_unavailable(day),
                past=self.is_past(day),
                selected=self.is_selected(day),
                in_range=self.is_in_range(day),
            ))
        return cells

    def render(self) -> dict:
        return {
            "month": self.month_label,
            "year": self.current_month.year,
            "month_number": self.current_month.month,
            "weekdays": WEEKDAY_HEADERS,
            "cells": [cell.as_dict() if cell else None for cell in self.month_grid()],
            "selected": [d.isoformat() for d in self._selected],
            "min_rental_days": self.min_rental_days,
            "max_rental_days": self.max_rental_days,
        }
