"""
Проверка бронирования перед сохранением.

Валидатор не доверяет ранее показанному списку слотов: допустимость записи
пересчитывается заново по текущему снимку записей специалиста.
"""
import logging

from .availability import (
    DEFAULT_SLOT_GRANULARITY,
    break_interval,
    check_slot,
    ensure_lead_time,
    ensure_positive_minutes,
    past_cutoff,
    working_window,
)
from .exceptions import ConflictError, SlotUnavailableError, StaffNotWorkingError
from .schedule import AppointmentStatus, ReservedAppointment
from .timeutils import overlaps, parse_date, to_hhmm, to_minutes

logger = logging.getLogger(__name__)


def find_conflicts(employee_id, date, start, end, existing_appointments):
    """Записи специалиста на дату, пересекающиеся с [start, end)"""
    return [
        appointment
        for appointment in existing_appointments
        if appointment.is_for(employee_id, date) and overlaps(start, end, *appointment.interval)
    ]


def validate_and_reserve(
    proposed,
    schedule,
    existing_appointments,
    service_duration,
    now,
    slot_granularity_minutes=DEFAULT_SLOT_GRANULARITY,
    lead_time_minutes=0,
):
    """
    Проверяет запрос на запись и возвращает ReservedAppointment.

    Ошибки:
        FormatError - неверный формат даты/времени
        InvalidDurationError - неположительная длительность услуги
        StaffNotWorkingError - у специалиста выходной
        SlotUnavailableError - время нарушает рабочие часы, перерыв, сетку или уже прошло
        ConflictError - время занято другой записью

    slot_granularity_minutes=None отключает проверку сетки (ручная запись
    администратором на произвольное время).

    Сохранение выполняет вызывающая сторона, в той же транзакции, в которой
    был прочитан existing_appointments.
    """
    date = parse_date(proposed.date)
    start = to_minutes(proposed.start_time)
    ensure_positive_minutes(service_duration)
    ensure_lead_time(lead_time_minutes)
    if slot_granularity_minutes is not None:
        ensure_positive_minutes(slot_granularity_minutes, 'slot granularity')

    day_config = schedule.for_day(date)
    if day_config is None or not day_config.is_working:
        raise StaffNotWorkingError()

    work_start, work_end = working_window(day_config)
    if start < work_start or start >= work_end:
        raise SlotUnavailableError(SlotUnavailableError.OUTSIDE_HOURS)

    if slot_granularity_minutes is not None and (start - work_start) % slot_granularity_minutes:
        raise SlotUnavailableError(SlotUnavailableError.OFF_GRID)

    reason = check_slot(
        start,
        service_duration,
        work_end,
        past_cutoff(date, now, lead_time_minutes),
        break_interval(day_config),
        busy=(),
    )
    if reason is not None:
        raise SlotUnavailableError(reason)

    end = start + service_duration
    conflicts = find_conflicts(proposed.employee_id, date, start, end, existing_appointments)
    if conflicts:
        logger.info(
            f"Booking conflict: employee={proposed.employee_id}, date={date}, "
            f"start={proposed.start_time}, conflicts={[c.start_time for c in conflicts]}"
        )
        raise ConflictError()

    return ReservedAppointment(
        employee_id=proposed.employee_id,
        service_id=proposed.service_id,
        date=date,
        start_time=to_hhmm(start),
        end_time=to_hhmm(end),
        duration=service_duration,
        status=AppointmentStatus.PENDING,
        client_id=proposed.client_id,
        business_id=proposed.business_id,
        price=proposed.price,
        comment=proposed.comment,
    )
