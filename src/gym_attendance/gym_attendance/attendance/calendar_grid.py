from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from ..common.datetime_utils import format_date, is_closed_day
from ..core.constants import CALENDAR_CELLS, DAYS_PER_WEEK
from .model import PresenceHistory


@dataclass(frozen=True)
class CalendarCell:
    day: Optional[int] = None
    date: Optional[date] = None
    is_current_month: bool = False
    attended: bool = False
    confirmed: bool = False
    is_today: bool = False

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "date": format_date(self.date) if self.date else None,
            "is_current_month": self.is_current_month,
            "attended": self.attended,
            "confirmed": self.confirmed,
            "is_today": self.is_today,
        }


BLANK = CalendarCell()


def is_month_within_limit(month: date, *, today: date) -> bool:
    return month.year == today.year


def build_month_grid(history: PresenceHistory, month: date, *, today: date) -> List[CalendarCell]:
    """Six weeks of cells (weeks start on Sunday) for the month containing `month`.

    Months outside the current attendance year produce an empty grid.
    January 1st is always rendered as a blank cell.
    """
    if not is_month_within_limit(month, today=today):
        return []

    year, month_index = month.year, month.month
    first = date(year, month_index, 1)
    # weekday(): Monday=0; shift so Sunday is the first column.
    leading = (first.weekday() + 1) % DAYS_PER_WEEK
    days_in_month = calendar.monthrange(year, month_index)[1]

    cells: List[CalendarCell] = [BLANK] * leading
    for day_number in range(1, days_in_month + 1):
        current = date(year, month_index, day_number)
        if is_closed_day(current):
            cells.append(BLANK)
            continue
        record = history.get(current)
        cells.append(
            CalendarCell(
                day=day_number,
                date=current,
                is_current_month=True,
                attended=record is not None,
                confirmed=bool(record and record.confirmed),
                is_today=current == today,
            )
        )

    cells.extend([BLANK] * (CALENDAR_CELLS - len(cells)))
    return cells
