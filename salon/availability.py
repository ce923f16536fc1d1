"""
Расчёт доступных слотов для записи.

Результат носит рекомендательный характер: окончательное решение о записи
принимает validate_and_reserve() на свежем снимке записей.
"""
import datetime
import logging
from typing import Iterable, List, Optional, Tuple

from .exceptions import InvalidDurationError, SlotUnavailableError
from .schedule import DaySchedule, ExistingAppointment, WeeklySchedule
from .timeutils import MINUTES_PER_DAY, current_minutes, overlaps, parse_date, to_hhmm, to_minutes

logger = logging.getLogger(__name__)

DEFAULT_SLOT_GRANULARITY = 30

# Причина отказа: пересечение с другой записью
BUSY = 'busy'


def ensure_positive_minutes(value, name='duration') -> int:
    # bool - подкласс int, но длительностью не является
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidDurationError(f"Значение {name} должно быть положительным числом минут, получено {value!r}")
    return value


def ensure_lead_time(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidDurationError(f"Время упреждения не может быть отрицательным, получено {value!r}")
    return value


def working_window(day_config: DaySchedule) -> Tuple[int, int]:
    return to_minutes(day_config.start_time), to_minutes(day_config.end_time)


def break_interval(day_config: DaySchedule) -> Optional[Tuple[int, int]]:
    if not day_config.has_break:
        return None
    return to_minutes(day_config.break_start), to_minutes(day_config.break_end)


def busy_intervals(existing_appointments: Iterable[ExistingAppointment], employee_id,
                   date: datetime.date) -> List[Tuple[int, int]]:
    """Интервалы [начало, начало + длительность) записей специалиста на дату"""
    return [
        appointment.interval
        for appointment in existing_appointments
        if appointment.is_for(employee_id, date)
    ]


def past_cutoff(date: datetime.date, now: datetime.datetime, lead_time_minutes=0) -> Optional[int]:
    """
    Граница, до которой (включительно) слоты уже в прошлом.

    None - дата в будущем, ограничения нет.
    """
    today = now.date()
    if date > today:
        return None
    if date < today:
        # Весь день в прошлом
        return MINUTES_PER_DAY
    return current_minutes(now) + lead_time_minutes


def check_slot(start, duration_minutes, work_end, cutoff, break_window, busy) -> Optional[str]:
    """
    Проверяет один кандидат. Возвращает причину отказа или None.

    Порядок проверок общий для калькулятора и валидатора.
    """
    end = start + duration_minutes
    if end > work_end:
        return SlotUnavailableError.PAST_CLOSING
    if cutoff is not None and start <= cutoff:
        return SlotUnavailableError.IN_THE_PAST
    if break_window and overlaps(start, end, *break_window):
        return SlotUnavailableError.BREAK_CONFLICT
    for busy_start, busy_end in busy:
        if overlaps(start, end, busy_start, busy_end):
            return BUSY
    return None


def compute_available_slots(
    schedule: WeeklySchedule,
    date,
    duration_minutes: int,
    existing_appointments: Iterable[ExistingAppointment],
    now: datetime.datetime,
    slot_granularity_minutes: int = DEFAULT_SLOT_GRANULARITY,
    lead_time_minutes: int = 0,
) -> List[str]:
    """
    Возвращает упорядоченный список времени начала ('HH:MM'), доступного для записи.

    Args:
        schedule: недельный график специалиста
        date: дата (date или 'YYYY-MM-DD')
        duration_minutes: длительность выбранной услуги
        existing_appointments: записи специалиста (лишние отфильтруются)
        now: текущее время, передаётся явно
        slot_granularity_minutes: шаг сетки слотов
        lead_time_minutes: минимальный запас до ближайшего слота сегодня

    Returns:
        Пустой список, если специалист не работает, иначе слоты по возрастанию
    """
    ensure_positive_minutes(duration_minutes)
    ensure_positive_minutes(slot_granularity_minutes, 'slot granularity')
    ensure_lead_time(lead_time_minutes)
    date = parse_date(date)

    day_config = schedule.for_day(date)
    if day_config is None or not day_config.is_working:
        return []

    work_start, work_end = working_window(day_config)
    busy = busy_intervals(existing_appointments, schedule.employee_id, date)
    cutoff = past_cutoff(date, now, lead_time_minutes)
    break_window = break_interval(day_config)

    slots = []
    for start in range(work_start, work_end, slot_granularity_minutes):
        if check_slot(start, duration_minutes, work_end, cutoff, break_window, busy) is None:
            slots.append(to_hhmm(start))

    logger.debug(
        f"Computed {len(slots)} slots: employee={schedule.employee_id}, date={date}, "
        f"duration={duration_minutes}, busy={len(busy)}"
    )
    return slots
