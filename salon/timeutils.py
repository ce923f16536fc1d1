"""
Арифметика времени для расчёта слотов.

Время внутри дня представлено количеством минут от полуночи.
"""
import datetime
import re

from .exceptions import FormatError

HHMM_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d\Z')
DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}\Z')

MINUTES_PER_DAY = 24 * 60


def to_minutes(hhmm: str) -> int:
    """Преобразует 'HH:MM' в минуты от полуночи"""
    if not isinstance(hhmm, str) or not HHMM_RE.fullmatch(hhmm):
        raise FormatError(f"Неверный формат времени: {hhmm!r}, ожидается HH:MM")
    hours, minutes = hhmm.split(':')
    return int(hours) * 60 + int(minutes)


def to_hhmm(minutes: int) -> str:
    """Преобразует минуты от полуночи в 'HH:MM'"""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Пересечение полуоткрытых интервалов [a_start, a_end) и [b_start, b_end).

    Запись, начинающаяся ровно в момент окончания другой, не пересекается с ней.
    """
    return a_start < b_end and b_start < a_end


def day_of_week_iso(date: datetime.date) -> int:
    """День недели по ISO: понедельник = 1, воскресенье = 7"""
    return date.isoweekday()


def parse_date(value) -> datetime.date:
    """Принимает date или строку 'YYYY-MM-DD'"""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not DATE_RE.fullmatch(value):
        raise FormatError(f"Неверный формат даты: {value!r}, ожидается YYYY-MM-DD")
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise FormatError(f"Несуществующая дата: {value}")


def current_minutes(now: datetime.datetime) -> int:
    return now.hour * 60 + now.minute


def time_to_hhmm(value) -> str:
    """datetime.time (из ORM) или строку приводит к 'HH:MM'"""
    if value is None:
        return None
    if isinstance(value, datetime.time):
        return value.strftime('%H:%M')
    return value
