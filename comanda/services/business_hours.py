"""Evaluación de horarios tipo "Lun-Vie 11:00-23:00, Sáb 12:00-00:00".

Reglas:
- los rangos de días pueden dar la vuelta a la semana (Vie-Lun);
- los rangos horarios pueden cruzar medianoche (20:00-02:00);
- un horario sin días repite los del segmento anterior, o vale toda la semana si es el primero;
- si ningún segmento tiene horario, o el texto no se entiende, se considera abierto.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from comanda.core.clock import local_now
from comanda.services.formatting import strip_accents

# domingo = 0, como en el calendario local
DAY_MAP = {
    "dom": 0,
    "lun": 1,
    "mar": 2,
    "mie": 3,
    "jue": 4,
    "vie": 5,
    "sab": 6,
    "sun": 0,
    "mon": 1,
    "tue": 2,
    "wed": 3,
    "thu": 4,
    "fri": 5,
    "sat": 6,
}

_TIME_RANGE_RE = re.compile(r"(\d{1,2})(?:[:.](\d{2}))?\s*(?:hs)?\s*(?:-|–|a|to)\s*(\d{1,2})(?:[:.](\d{2}))?")
_DAY_TOKEN_RE = re.compile(r"[a-z]{3,}")
_DAY_RANGE_RE = re.compile(r"([a-z]{3,})\s*(?:-|–|a|to)\s*([a-z]{3,})")
_SEGMENT_SPLIT_RE = re.compile(r"[;\n,]")


@dataclass
class HoursSegment:
    days: frozenset[int]
    start_minute: int
    end_minute: int

    def contains(self, day: int, minute: int) -> bool:
        if self.start_minute < self.end_minute:
            return day in self.days and self.start_minute <= minute < self.end_minute
        # cruza medianoche
        previous_day = (day - 1) % 7
        return (day in self.days and minute >= self.start_minute) or (
            previous_day in self.days and minute < self.end_minute
        )


def _day_index(token: str) -> int | None:
    return DAY_MAP.get(token[:3])


def _parse_days(text: str) -> set[int]:
    days: set[int] = set()
    for start_token, end_token in _DAY_RANGE_RE.findall(text):
        start, end = _day_index(start_token), _day_index(end_token)
        if start is None or end is None:
            continue
        day = start
        days.add(day)
        while day != end:
            day = (day + 1) % 7
            days.add(day)
    remainder = _DAY_RANGE_RE.sub(" ", text)
    for token in _DAY_TOKEN_RE.findall(remainder):
        index = _day_index(token)
        if index is not None:
            days.add(index)
    return days


def _to_minute(hour: str, minute: str | None) -> int | None:
    h = int(hour)
    m = int(minute or 0)
    if h > 24 or m > 59:
        return None
    return min(h * 60 + m, 24 * 60)


def parse_business_hours(text: str | None) -> list[HoursSegment]:
    segments: list[HoursSegment] = []
    pending_days: set[int] = set()
    previous_days: set[int] = set()
    normalized = strip_accents(text or "").lower()
    for raw_segment in _SEGMENT_SPLIT_RE.split(normalized):
        match = _TIME_RANGE_RE.search(raw_segment)
        if not match:
            # "Lun, Mié 10-12": los días sueltos se suman al próximo segmento con horario
            pending_days |= _parse_days(raw_segment)
            continue
        start = _to_minute(match.group(1), match.group(2))
        end = _to_minute(match.group(3), match.group(4))
        if start is None or end is None:
            continue
        days = _parse_days(raw_segment[: match.start()]) | pending_days
        pending_days = set()
        if not days:
            # "Lun-Vie 11-15, 19-23": el segundo turno hereda los días del primero
            days = previous_days or set(range(7))
        previous_days = days
        if end == 24 * 60:
            end = 0 if start > 0 else end
        segments.append(HoursSegment(days=frozenset(days), start_minute=start, end_minute=end))
    return segments


def is_within_business_hours(text: str | None, now: datetime | None = None) -> bool:
    segments = parse_business_hours(text)
    if not segments:
        return True
    local = local_now(now)
    day = (local.weekday() + 1) % 7
    minute = local.hour * 60 + local.minute
    return any(segment.contains(day, minute) for segment in segments)
