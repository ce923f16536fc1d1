"""
Утилиты для работы с записями: загрузка графиков и записей из базы,
поиск слотов и сохранение проверенных записей
"""
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from decimal import Decimal
import datetime
import logging
import re

from .availability import compute_available_slots
from .exceptions import ConflictError
from .models import Appointment, Client, StaffMember, SystemSettings, WorkingHours
from .schedule import (
    AppointmentStatus,
    ExistingAppointment,
    ProposedBooking,
    WeeklySchedule,
    default_weekly_schedule,
)
from .timeutils import parse_date, time_to_hhmm
from .validation import validate_and_reserve

logger = logging.getLogger(__name__)


def hhmm_to_time(value):
    if value is None or isinstance(value, datetime.time):
        return value
    return datetime.datetime.strptime(value, '%H:%M').time()


def resolve_now(now=None):
    """Текущее локальное время салона (или переданное явно)"""
    if now is None:
        now = timezone.now()
    if timezone.is_aware(now):
        now = timezone.localtime(now)
    return now


def get_weekly_schedule(staff):
    """
    Возвращает недельный график сотрудника.
    Если график ещё не задан, используется график по умолчанию (Пн–Пт 09:00–17:00).
    """
    rows = list(staff.working_hours.all())
    if not rows:
        return default_weekly_schedule(employee_id=staff.id)
    return WeeklySchedule([row.to_day_schedule() for row in rows], employee_id=staff.id)


def _working_hours_rows(staff, schedule):
    return [
        WorkingHours(
            staff=staff,
            day_of_week=day.day_of_week,
            is_working=day.is_working,
            start_time=hhmm_to_time(day.start_time),
            end_time=hhmm_to_time(day.end_time),
            break_start=hhmm_to_time(day.break_start) if day.has_break else None,
            break_end=hhmm_to_time(day.break_end) if day.has_break else None,
        )
        for day in schedule
    ]


def create_default_working_hours(staff):
    """Создаёт график по умолчанию, если у сотрудника его нет"""
    if staff.working_hours.exists():
        return 0
    rows = WorkingHours.objects.bulk_create(
        _working_hours_rows(staff, default_weekly_schedule(employee_id=staff.id))
    )
    logger.info(f"Default working hours created for staff {staff.id}")
    return len(rows)


def replace_weekly_schedule(staff, days):
    """
    Полностью заменяет недельный график сотрудника.

    Args:
        staff: StaffMember
        days: список DaySchedule

    Raises:
        ScheduleConfigError: если какой-либо день нарушает инварианты
    """
    schedule = WeeklySchedule(days, employee_id=staff.id)
    schedule.validate()

    with transaction.atomic():
        staff.working_hours.all().delete()
        WorkingHours.objects.bulk_create(_working_hours_rows(staff, schedule))

    logger.info(f"Working hours replaced for staff {staff.id}: {len(schedule)} days")
    return get_weekly_schedule(staff)


def to_existing_appointment(appointment):
    return ExistingAppointment(
        employee_id=appointment.employee_id,
        date=appointment.date,
        start_time=time_to_hhmm(appointment.start_time),
        end_time=time_to_hhmm(appointment.end_time),
        duration=appointment.duration,
    )


def get_existing_appointments(staff, date, exclude_id=None):
    """Активные (не отменённые) записи сотрудника на дату"""
    appointments = Appointment.objects.filter(
        employee=staff,
        date=date,
    ).exclude(status__in=AppointmentStatus.INACTIVE)

    if exclude_id:
        appointments = appointments.exclude(id=exclude_id)

    return [to_existing_appointment(appointment) for appointment in appointments]


def find_available_slots(staff, service, date, now=None):
    """
    Возвращает список свободного времени начала ('HH:MM') для сотрудника и услуги.
    """
    settings = SystemSettings.get_solo()
    date = parse_date(date)

    return compute_available_slots(
        get_weekly_schedule(staff),
        date,
        service.duration_minutes,
        get_existing_appointments(staff, date),
        resolve_now(now),
        slot_granularity_minutes=settings.slot_granularity_minutes,
        lead_time_minutes=settings.booking_lead_time_minutes,
    )


def _lock_staff(staff):
    # Блокировка строки сотрудника сериализует конкурирующие записи к нему
    return StaffMember.objects.select_for_update().get(pk=staff.pk)


def reserve_appointment(staff, service, date, start_time, client=None, comment='',
                        now=None, created_by=None, enforce_grid=True):
    """
    Проверяет и сохраняет новую запись в одной транзакции.

    Записи сотрудника перечитываются внутри транзакции после блокировки,
    поэтому из двух одновременных запросов на одно время второй получит ConflictError.

    Args:
        enforce_grid: False - разрешить время вне сетки слотов (ручная запись)

    Returns:
        Appointment
    """
    settings = SystemSettings.get_solo()
    now = resolve_now(now)
    proposed = ProposedBooking(
        employee_id=staff.id,
        service_id=service.id,
        date=date,
        start_time=start_time,
        client_id=client.id if client else None,
        business_id=staff.business_id,
        price=service.price,
        comment=comment or '',
    )

    try:
        with transaction.atomic():
            _lock_staff(staff)
            date = parse_date(date)
            reserved = validate_and_reserve(
                proposed,
                get_weekly_schedule(staff),
                get_existing_appointments(staff, date),
                service.duration_minutes,
                now,
                slot_granularity_minutes=settings.slot_granularity_minutes if enforce_grid else None,
                lead_time_minutes=settings.booking_lead_time_minutes,
            )
            appointment = Appointment.objects.create(
                business_id=reserved.business_id,
                client=client,
                employee=staff,
                service=service,
                date=reserved.date,
                start_time=hhmm_to_time(reserved.start_time),
                end_time=hhmm_to_time(reserved.end_time),
                duration=reserved.duration,
                status=reserved.status,
                price=reserved.price,
                comment=reserved.comment,
                created_by=created_by,
            )
    except IntegrityError:
        logger.warning(f"Unique slot constraint hit: staff={staff.id}, date={date}, start={start_time}")
        raise ConflictError()

    logger.info(
        f"Appointment reserved: id={appointment.id}, staff={staff.id}, "
        f"date={appointment.date}, time={reserved.start_time}-{reserved.end_time}"
    )
    return appointment


def reschedule_appointment(appointment, date=None, start_time=None, employee=None,
                           now=None, enforce_grid=True):
    """
    Переносит запись на другое время (и/или к другому сотруднику) с полной проверкой.
    Сама запись исключается из проверки конфликтов.
    """
    settings = SystemSettings.get_solo()
    now = resolve_now(now)
    staff = employee or appointment.employee
    date = date if date is not None else appointment.date
    start_time = start_time if start_time is not None else time_to_hhmm(appointment.start_time)

    proposed = ProposedBooking(
        employee_id=staff.id,
        service_id=appointment.service_id,
        date=date,
        start_time=start_time,
        client_id=appointment.client_id,
        business_id=appointment.business_id,
        price=appointment.price,
        comment=appointment.comment,
    )

    try:
        with transaction.atomic():
            _lock_staff(staff)
            date = parse_date(date)
            reserved = validate_and_reserve(
                proposed,
                get_weekly_schedule(staff),
                get_existing_appointments(staff, date, exclude_id=appointment.id),
                appointment.duration,
                now,
                slot_granularity_minutes=settings.slot_granularity_minutes if enforce_grid else None,
                lead_time_minutes=settings.booking_lead_time_minutes,
            )
            appointment.employee = staff
            appointment.date = reserved.date
            appointment.start_time = hhmm_to_time(reserved.start_time)
            appointment.end_time = hhmm_to_time(reserved.end_time)
            appointment.save(update_fields=['employee', 'date', 'start_time', 'end_time', 'updated_at'])
    except IntegrityError:
        logger.warning(f"Unique slot constraint hit on reschedule: appointment={appointment.id}")
        raise ConflictError()

    logger.info(f"Appointment {appointment.id} rescheduled to {appointment.date} {reserved.start_time}")
    return appointment


def reactivate_appointment(appointment, status, now=None):
    """
    Возвращает отменённую запись в активный статус.

    Пока запись была отменена, её время могли занять, поэтому оно
    проверяется заново так же, как при новой записи (без проверки сетки).
    """
    settings = SystemSettings.get_solo()
    now = resolve_now(now)
    previous_status = appointment.status
    staff = appointment.employee
    start_time = time_to_hhmm(appointment.start_time)

    proposed = ProposedBooking(
        employee_id=staff.id,
        service_id=appointment.service_id,
        date=appointment.date,
        start_time=start_time,
        client_id=appointment.client_id,
        business_id=appointment.business_id,
        price=appointment.price,
        comment=appointment.comment,
    )

    try:
        with transaction.atomic():
            _lock_staff(staff)
            validate_and_reserve(
                proposed,
                get_weekly_schedule(staff),
                get_existing_appointments(staff, appointment.date, exclude_id=appointment.id),
                appointment.duration,
                now,
                slot_granularity_minutes=None,
                lead_time_minutes=settings.booking_lead_time_minutes,
            )
            appointment.status = status
            appointment.save(update_fields=['status', 'updated_at'])
    except IntegrityError:
        appointment.status = previous_status
        logger.warning(f"Unique slot constraint hit on reactivation: appointment={appointment.id}")
        raise ConflictError()

    logger.info(f"Appointment {appointment.id} reactivated as {status} at {appointment.date} {start_time}")
    return appointment


def normalize_phone(phone):
    return re.sub(r'[^\d+]', '', phone or '')


def find_or_create_client(business, name, email='', phone=''):
    """
    Находит клиента салона по email или телефону, иначе создаёт нового.
    """
    email = (email or '').strip().lower()
    phone = normalize_phone(phone)

    lookup = Q()
    if email:
        lookup |= Q(email__iexact=email)
    if phone:
        lookup |= Q(phone=phone)

    if lookup:
        client = Client.objects.filter(lookup, business=business).order_by('id').first()
        if client:
            return client, False

    client = Client.objects.create(
        business=business,
        name=re.sub(r'\s+', ' ', (name or '').strip()),
        email=email,
        phone=phone,
    )
    logger.info(f"Client created: id={client.id}, business={business.id}")
    return client, True


def format_duration(minutes):
    """Длительность в виде '2 ч 30 мин'"""
    minutes = minutes or 0
    if minutes >= 60:
        hours = minutes // 60
        remaining_minutes = minutes % 60
        if remaining_minutes:
            return f"{hours} ч {remaining_minutes} мин"
        return f"{hours} ч"
    return f"{minutes} мин"


def appointment_summary(business, start, end, employee=None):
    """
    Сводка по записям салона за период: статусы, выручка, популярность услуг,
    загрузка сотрудников.
    """
    appointments = Appointment.objects.filter(business=business, date__range=[start, end])
    if employee:
        appointments = appointments.filter(employee=employee)

    by_status = {status: 0 for status in AppointmentStatus.ALL}
    for row in appointments.values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    completed = appointments.filter(status=AppointmentStatus.COMPLETED)
    revenue = completed.aggregate(total=Sum('price'))['total'] or Decimal('0')

    active = appointments.exclude(status__in=AppointmentStatus.INACTIVE)
    service_popularity = list(
        active.values('service__name').annotate(count=Count('id')).order_by('-count', 'service__name')
    )

    staff_load = []
    for item in active.values('employee__full_name').annotate(
        total_duration=Sum('duration')
    ).order_by('-total_duration'):
        minutes = item.get('total_duration') or 0
        staff_load.append({
            'employee': item['employee__full_name'],
            'total_duration_minutes': minutes,
            'total_duration_display': format_duration(minutes),
        })

    return {
        'start': start.isoformat(),
        'end': end.isoformat(),
        'total': sum(by_status.values()),
        'by_status': by_status,
        'revenue': str(revenue.quantize(Decimal('0.01'))),
        'service_popularity': [
            {'service': row['service__name'], 'count': row['count']} for row in service_popularity
        ],
        'staff_load': staff_load,
    }
