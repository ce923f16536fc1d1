from django.db import models
from django.contrib.auth.models import User
from solo.models import SingletonModel

from .schedule import DAY_NAMES, AppointmentStatus, DaySchedule
from .timeutils import time_to_hhmm


class SystemSettings(SingletonModel):
    """Глобальные настройки системы"""
    slot_granularity_minutes = models.PositiveIntegerField(
        default=30,
        help_text="Шаг сетки слотов для записи (в минутах).",
        verbose_name='Шаг слотов (мин)'
    )
    booking_lead_time_minutes = models.PositiveIntegerField(
        default=0,
        help_text="Минимальный запас между текущим временем и ближайшим слотом на сегодня.",
        verbose_name='Время упреждения (мин)'
    )
    public_booking_enabled = models.BooleanField(
        default=True,
        help_text="Разрешить клиентам записываться через публичную форму",
        verbose_name='Публичная запись'
    )

    class Meta:
        verbose_name = 'Настройки системы'
        verbose_name_plural = 'Настройки системы'

    def __str__(self):
        return 'Настройки системы'


class Business(models.Model):
    """Салон"""
    name = models.CharField(max_length=200, verbose_name='Название')
    owner = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='owned_businesses',
        verbose_name='Владелец'
    )
    email = models.EmailField(blank=True, verbose_name='Email')
    phone = models.CharField(max_length=50, blank=True, verbose_name='Телефон')
    address = models.CharField(max_length=255, blank=True, verbose_name='Адрес')
    website = models.URLField(blank=True, verbose_name='Сайт')
    created_at = models.DateTimeField(auto_now_add=True, verbose_name='Создано')
    updated_at = models.DateTimeField(auto_now=True, verbose_name='Обновлено')

    class Meta:
        verbose_name = 'Салон'
        verbose_name_plural = 'Салоны'

    def __str__(self):
        return self.name


class ServiceCategory(models.Model):
    """Категория услуг"""
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='service_categories',
        verbose_name='Салон'
    )
    name = models.CharField(max_length=100, verbose_name='Название')
    description = models.TextField(blank=True, verbose_name='Описание')
    color = models.CharField(
        max_length=20,
        blank=True,
        help_text="Цвет для отображения в календаре, напр. '#B91C1C'",
        verbose_name='Цвет'
    )

    class Meta:
        verbose_name = 'Категория услуг'
        verbose_name_plural = 'Категории услуг'
        ordering = ['name']

    def __str__(self):
        return self.name


class Service(models.Model):
    """Услуга"""
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='services',
        verbose_name='Салон'
    )
    category = models.ForeignKey(
        ServiceCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='services',
        verbose_name='Категория'
    )
    name = models.CharField(
        max_length=200,
        help_text="Напр., 'Женская стрижка'",
        verbose_name='Название'
    )
    description = models.TextField(blank=True, verbose_name='Описание')
    duration_minutes = models.PositiveIntegerField(verbose_name='Длительность (мин)')
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        verbose_name='Цена'
    )
    image_url = models.URLField(blank=True, verbose_name='Изображение')

    class Meta:
        verbose_name = 'Услуга'
        verbose_name_plural = 'Услуги'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.duration_minutes} мин)"


class StaffMember(models.Model):
    """Сотрудник салона"""
    ROLE_ADMIN = 'admin'
    ROLE_STAFF = 'staff'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Администратор'),
        (ROLE_STAFF, 'Мастер'),
    ]

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='staff_profile',
        help_text="Аккаунт для входа в систему.",
        verbose_name='Пользователь'
    )
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='staff',
        verbose_name='Салон'
    )
    full_name = models.CharField(max_length=200, verbose_name='Полное имя')
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_STAFF,
        verbose_name='Роль'
    )
    phone = models.CharField(max_length=50, blank=True, verbose_name='Телефон')
    avatar = models.URLField(blank=True, verbose_name='Аватар')
    services = models.ManyToManyField(
        Service,
        blank=True,
        related_name='staff',
        help_text="Какие услуги может выполнять этот сотрудник.",
        verbose_name='Может выполнять услуги'
    )

    class Meta:
        verbose_name = 'Сотрудник'
        verbose_name_plural = 'Сотрудники'
        ordering = ['full_name']

    def __str__(self):
        return self.full_name

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN


class WorkingHours(models.Model):
    """Рабочие часы сотрудника в один день недели (ISO: понедельник = 1)"""
    DAYS_OF_WEEK = sorted(DAY_NAMES.items())

    staff = models.ForeignKey(
        StaffMember,
        on_delete=models.CASCADE,
        related_name='working_hours',
        verbose_name='Сотрудник'
    )
    day_of_week = models.PositiveSmallIntegerField(choices=DAYS_OF_WEEK, verbose_name='День недели')
    is_working = models.BooleanField(default=True, verbose_name='Рабочий день')
    start_time = models.TimeField(verbose_name='Начало работы')
    end_time = models.TimeField(verbose_name='Окончание работы')
    break_start = models.TimeField(null=True, blank=True, verbose_name='Начало перерыва')
    break_end = models.TimeField(null=True, blank=True, verbose_name='Окончание перерыва')

    class Meta:
        verbose_name = 'Рабочие часы'
        verbose_name_plural = 'Рабочие часы'
        unique_together = ('staff', 'day_of_week')
        ordering = ['staff', 'day_of_week']

    def __str__(self):
        day_name = DAY_NAMES[self.day_of_week]
        if not self.is_working:
            return f"{self.staff.full_name} - {day_name} (выходной)"
        return f"{self.staff.full_name} - {day_name} ({self.start_time}-{self.end_time})"

    def to_day_schedule(self):
        return DaySchedule(
            day_of_week=self.day_of_week,
            is_working=self.is_working,
            start_time=time_to_hhmm(self.start_time),
            end_time=time_to_hhmm(self.end_time),
            break_start=time_to_hhmm(self.break_start),
            break_end=time_to_hhmm(self.break_end),
        )


class Client(models.Model):
    """Клиент салона"""
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='clients',
        verbose_name='Салон'
    )
    name = models.CharField(max_length=200, verbose_name='Имя')
    phone = models.CharField(max_length=50, blank=True, verbose_name='Телефон')
    email = models.EmailField(blank=True, verbose_name='Email')
    total_visits = models.PositiveIntegerField(default=0, verbose_name='Всего визитов')
    last_visit = models.DateField(null=True, blank=True, verbose_name='Последний визит')
    notes = models.TextField(blank=True, verbose_name='Заметки')
    created_at = models.DateTimeField(auto_now_add=True, verbose_name='Создано')

    class Meta:
        verbose_name = 'Клиент'
        verbose_name_plural = 'Клиенты'
        ordering = ['name']

    def __str__(self):
        return self.name


class Appointment(models.Model):
    """Запись клиента к сотруднику"""
    STATUS_CHOICES = [
        (AppointmentStatus.PENDING, 'Ожидает подтверждения'),
        (AppointmentStatus.CONFIRMED, 'Подтверждено'),
        (AppointmentStatus.ARRIVED, 'Клиент пришёл'),
        (AppointmentStatus.COMPLETED, 'Выполнено'),
        (AppointmentStatus.CANCELLED, 'Отменено'),
        (AppointmentStatus.NO_SHOW, 'Не пришёл'),
    ]

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='appointments',
        verbose_name='Салон'
    )
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='appointments',
        verbose_name='Клиент'
    )
    employee = models.ForeignKey(
        StaffMember,
        on_delete=models.PROTECT,
        related_name='appointments',
        verbose_name='Сотрудник'
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name='appointments',
        verbose_name='Услуга'
    )
    date = models.DateField(verbose_name='Дата')
    start_time = models.TimeField(verbose_name='Время начала')
    end_time = models.TimeField(
        help_text="Рассчитывается при записи: start_time + duration.",
        verbose_name='Время окончания'
    )
    duration = models.PositiveIntegerField(verbose_name='Длительность (мин)')
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=AppointmentStatus.PENDING,
        verbose_name='Статус'
    )
    price = models.DecimalField(max_digits=10, decimal_places=2, verbose_name='Цена')
    comment = models.TextField(blank=True, verbose_name='Комментарий')
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_appointments',
        verbose_name='Создано пользователем'
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name='Создано')
    updated_at = models.DateTimeField(auto_now=True, verbose_name='Обновлено')

    class Meta:
        verbose_name = 'Запись'
        verbose_name_plural = 'Записи'
        ordering = ['date', 'start_time']
        constraints = [
            # Последний рубеж против двойной записи при гонке запросов
            models.UniqueConstraint(
                fields=['employee', 'date', 'start_time'],
                condition=~models.Q(status=AppointmentStatus.CANCELLED),
                name='appointment_unique_active_slot'
            ),
        ]

    def __str__(self):
        return f"{self.client or 'Без клиента'} - {self.service.name} ({self.date} {time_to_hhmm(self.start_time)})"

    @property
    def is_active(self):
        return self.status not in AppointmentStatus.INACTIVE


class AppointmentLog(models.Model):
    """Журнал действий с записями"""
    ACTION_CHOICES = [
        ('created', 'Создана'),
        ('updated', 'Изменена'),
        ('rescheduled', 'Перенесена'),
        ('status_changed', 'Смена статуса'),
        ('deleted', 'Удалена'),
    ]

    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.SET_NULL,
        null=True,
        related_name='logs',
        verbose_name='Запись'
    )
    action = models.CharField(max_length=30, choices=ACTION_CHOICES, verbose_name='Действие')
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='appointment_logs',
        verbose_name='Пользователь'
    )
    message = models.TextField(verbose_name='Описание')
    old_values = models.JSONField(null=True, blank=True, verbose_name='Старые значения')
    new_values = models.JSONField(null=True, blank=True, verbose_name='Новые значения')
    ip_address = models.GenericIPAddressField(null=True, blank=True, verbose_name='IP адрес')
    created_at = models.DateTimeField(auto_now_add=True, verbose_name='Создано')

    class Meta:
        verbose_name = 'Запись журнала'
        verbose_name_plural = 'Журнал записей'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_action_display()} - {self.created_at}"
