"""
Pure helpers for times of day and calendar dates.

Times travel as ``HH:MM`` strings on the API and in storage; internally
they are minutes since midnight.  Nothing here touches the database.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date


TIME_RE = re.compile(r'^([01][0-9]|2[0-3]):[0-5][0-9]$')
DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def parse_hhmm(value: str) -> int:
    """``'09:30'`` -> ``570``.  Raises ``ValueError`` on anything else."""
    if not isinstance(value, str) or not TIME_RE.match(value):
        raise ValueError(f'invalid time of day: {value!r}')
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def format_hhmm(minutes: int) -> str:
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError(f'minute offset out of range: {minutes}')
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def parse_calendar_date(value: str) -> date:
    """Strict ``YYYY-MM-DD`` parsing."""
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValueError(f'invalid date: {value!r}')
    return date.fromisoformat(value)


def day_of_week(day: date) -> int:
    """Weekday with Sunday = 0 ... Saturday = 6."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class Window:
    """Half-open interval ``[start, end)`` in minutes since midnight."""
    start: int
    end: int

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError('window end must be after its start')

    @classmethod
    def parse(cls, start: str, end: str) -> 'Window':
        return cls(parse_hhmm(start), parse_hhmm(end))

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: 'Window') -> bool:
        return self.start < other.end and other.start < self.end

    def as_strings(self) -> tuple[str, str]:
        return format_hhmm(self.start), format_hhmm(self.end)


def partition(window: Window, count: int) -> list[Window]:
    """Split ``window`` into ``count`` consecutive equal serial windows.

    Each window is ``length // count`` minutes long; any remainder at the
    end of the range is left unassigned.  Raises ``ValueError`` when the
    count is not positive or the per-serial length truncates to zero.
    """
    if count <= 0:
        raise ValueError('serial count must be positive')
    duration = window.length // count
    if duration == 0:
        raise ValueError(
            f'{count} serials do not fit into {window.length} minutes'
        )
    return [
        Window(window.start + i * duration, window.start + (i + 1) * duration)
        for i in range(count)
    ]


def serial_window(window: Window, count: int, serial_number: int) -> Window:
    """Window of one 1-based serial without materialising the whole list."""
    if not 1 <= serial_number <= count:
        raise ValueError(f'serial {serial_number} outside 1..{count}')
    duration = window.length // count
    if duration == 0:
        raise ValueError(
            f'{count} serials do not fit into {window.length} minutes'
        )
    start = window.start + (serial_number - 1) * duration
    return Window(start, start + duration)


def expand(window: Window, duration: int) -> list[Window]:
    """Fixed-length slots inside ``window``; a partial trailing slot is dropped."""
    if duration <= 0:
        raise ValueError('slot duration must be positive')
    slots: list[Window] = []
    cur = window.start
    while cur + duration <= window.end:
        slots.append(Window(cur, cur + duration))
        cur += duration
    return slots
