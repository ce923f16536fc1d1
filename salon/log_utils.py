"""
Утилиты для логирования действий с записями
"""
from .models import AppointmentLog
from .timeutils import time_to_hhmm
import logging

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Получает IP адрес клиента из запроса"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def log_appointment_action(appointment, action, user, message, old_values=None, new_values=None, request=None):
    """
    Логирует действие с записью

    Args:
        appointment: Appointment - запись
        action: str - тип действия (из AppointmentLog.ACTION_CHOICES)
        user: User - пользователь, выполнивший действие (None для публичной записи)
        message: str - описание действия
        old_values: dict - старые значения полей (опционально)
        new_values: dict - новые значения полей (опционально)
        request: HttpRequest - запрос для получения IP адреса (опционально)
    """
    try:
        ip_address = None
        if request:
            ip_address = get_client_ip(request)

        if user is not None and not user.is_authenticated:
            user = None

        AppointmentLog.objects.create(
            appointment=appointment,
            action=action,
            user=user,
            message=message,
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address
        )

        logger.info(f"Appointment log created: appointment_id={appointment.id}, action={action}, user={user.username if user else 'None'}")

    except Exception as e:
        logger.error(f"Error creating appointment log: {e}", exc_info=True)
        # Не прерываем выполнение, если логирование не удалось


TRACKED_FIELDS = [
    'status', 'date', 'start_time', 'end_time', 'comment',
    'employee_id', 'service_id', 'client_id',
]


def snapshot_appointment(appointment):
    """Значения отслеживаемых полей записи в JSON-совместимом виде"""
    values = {}
    for field in TRACKED_FIELDS:
        value = getattr(appointment, field, None)
        if field in ('start_time', 'end_time'):
            value = time_to_hhmm(value)
        elif hasattr(value, 'isoformat'):
            value = value.isoformat()
        values[field] = value
    return values


def get_appointment_changes(old_values, new_values):
    """
    Определяет изменения между двумя снимками записи

    Returns:
        tuple: (old_values, new_values) - словари только с изменёнными полями
    """
    changed_old = {}
    changed_new = {}
    for field in TRACKED_FIELDS:
        if old_values.get(field) != new_values.get(field):
            changed_old[field] = old_values.get(field)
            changed_new[field] = new_values.get(field)
    return changed_old, changed_new
