"""
Сигналы Django для обработки событий моделей
"""
from django.db.models import F
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver
import logging

from .models import Appointment, Client, StaffMember
from .schedule import AppointmentStatus
from .utils import create_default_working_hours

logger = logging.getLogger(__name__)


@receiver(post_save, sender=StaffMember)
def create_staff_working_hours(sender, instance, created, **kwargs):
    """
    Новому сотруднику назначается график по умолчанию (Пн–Пт 09:00–17:00)
    """
    if not created or kwargs.get('raw'):
        return
    create_default_working_hours(instance)


@receiver(pre_save, sender=Appointment)
def remember_previous_status(sender, instance, **kwargs):
    if not instance.pk:
        instance._previous_status = None
        return
    instance._previous_status = (
        Appointment.objects.filter(pk=instance.pk).values_list('status', flat=True).first()
    )


@receiver(post_save, sender=Appointment)
def update_client_visits(sender, instance, created, **kwargs):
    """
    При переходе записи в статус Completed увеличивает счётчик визитов клиента
    """
    if kwargs.get('raw') or not instance.client_id:
        return
    if instance.status != AppointmentStatus.COMPLETED:
        return
    if getattr(instance, '_previous_status', None) == AppointmentStatus.COMPLETED:
        return

    Client.objects.filter(pk=instance.client_id).update(
        total_visits=F('total_visits') + 1,
        last_visit=instance.date,
    )
    logger.info(f"Client {instance.client_id} visit recorded for appointment {instance.id}")
