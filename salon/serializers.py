"""
Serializers для Django REST Framework API
"""
from django.contrib.auth.models import User
from django.db import transaction
from rest_framework import serializers
import logging

from .exceptions import FormatError, ScheduleConfigError
from .models import Appointment, Business, Client, Service, ServiceCategory, StaffMember
from .schedule import AppointmentStatus, DaySchedule, WeeklySchedule
from .timeutils import HHMM_RE

logger = logging.getLogger(__name__)


class HHMMField(serializers.TimeField):
    """Время в формате 'HH:MM' (24 часа)"""

    def __init__(self, **kwargs):
        kwargs.setdefault('format', '%H:%M')
        kwargs.setdefault('input_formats', ['%H:%M'])
        super().__init__(**kwargs)


class ServiceCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceCategory
        fields = ['id', 'name', 'description', 'color', 'business']
        read_only_fields = ['business']


class ServiceSerializer(serializers.ModelSerializer):
    """Сериализатор для Service"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Service
        fields = [
            'id',
            'name',
            'description',
            'duration_minutes',
            'price',
            'category',
            'category_name',
            'image_url',
            'business',
        ]
        read_only_fields = ['business']

    def validate_duration_minutes(self, value):
        if value <= 0:
            raise serializers.ValidationError("Длительность услуги должна быть больше нуля")
        return value

    def validate_category(self, value):
        business = self.context.get('business')
        if value and business and value.business_id != business.id:
            raise serializers.ValidationError("Категория принадлежит другому салону")
        return value


class ClientSerializer(serializers.ModelSerializer):
    """Сериализатор для Client"""

    class Meta:
        model = Client
        fields = ['id', 'name', 'phone', 'email', 'total_visits', 'last_visit', 'notes', 'business']
        read_only_fields = ['total_visits', 'last_visit', 'business']

    def validate_name(self, value):
        if not value or len(value.strip()) < 2:
            raise serializers.ValidationError("Имя клиента должно содержать минимум 2 символа")
        return value.strip()


class DayScheduleSerializer(serializers.Serializer):
    """Один день недельного графика (ISO: понедельник = 1)"""
    day_of_week = serializers.IntegerField(min_value=1, max_value=7)
    is_working = serializers.BooleanField()
    start_time = serializers.RegexField(HHMM_RE, required=False, default='09:00')
    end_time = serializers.RegexField(HHMM_RE, required=False, default='17:00')
    break_start = serializers.RegexField(HHMM_RE, required=False, allow_null=True, default=None)
    break_end = serializers.RegexField(HHMM_RE, required=False, allow_null=True, default=None)

    def to_representation(self, instance):
        return {
            'day_of_week': instance.day_of_week,
            'is_working': instance.is_working,
            'start_time': instance.start_time,
            'end_time': instance.end_time,
            'break_start': instance.break_start if instance.has_break else None,
            'break_end': instance.break_end if instance.has_break else None,
        }


class WeeklyScheduleSerializer(serializers.Serializer):
    """Недельный график целиком; сохраняется с полной заменой"""
    days = DayScheduleSerializer(many=True)

    def validate_days(self, value):
        if not value:
            raise serializers.ValidationError("График должен содержать хотя бы один день")
        return value

    def validate(self, attrs):
        try:
            schedule = WeeklySchedule([DaySchedule(**day) for day in attrs['days']])
            schedule.validate()
        except (ScheduleConfigError, FormatError) as e:
            raise serializers.ValidationError({'days': str(e)})
        attrs['schedule'] = schedule
        return attrs

    def to_representation(self, instance):
        return {
            'employee': instance.employee_id,
            'days': [DayScheduleSerializer(day).data for day in instance],
        }


class StaffMemberSerializer(serializers.ModelSerializer):
    """Сериализатор для StaffMember"""
    email = serializers.EmailField(source='user.email', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = StaffMember
        fields = ['id', 'full_name', 'username', 'email', 'role', 'phone', 'avatar', 'services', 'business']
        read_only_fields = ['business']

    def validate_services(self, value):
        business = self.context.get('business')
        if business and any(service.business_id != business.id for service in value):
            raise serializers.ValidationError("Услуги должны принадлежать салону сотрудника")
        return value


class StaffMemberCreateSerializer(StaffMemberSerializer):
    """Создание сотрудника вместе с учётной записью"""
    username = serializers.CharField(write_only=True)
    email = serializers.EmailField(write_only=True, required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, min_length=8, style={'input_type': 'password'})

    class Meta(StaffMemberSerializer.Meta):
        fields = StaffMemberSerializer.Meta.fields + ['password']

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("Пользователь с таким именем уже существует")
        return value

    def create(self, validated_data):
        services = validated_data.pop('services', [])
        with transaction.atomic():
            user = User.objects.create_user(
                username=validated_data.pop('username'),
                email=validated_data.pop('email', ''),
                password=validated_data.pop('password'),
            )
            staff = StaffMember.objects.create(user=user, **validated_data)
            staff.services.set(services)
        return staff


class PublicStaffSerializer(serializers.ModelSerializer):
    class Meta:
        model = StaffMember
        fields = ['id', 'full_name', 'avatar', 'services']


class AppointmentSerializer(serializers.ModelSerializer):
    """Сериализатор для Appointment"""
    start_time = HHMMField(read_only=True)
    end_time = HHMMField(read_only=True)
    client_name = serializers.CharField(source='client.name', read_only=True, default=None)
    employee_name = serializers.CharField(source='employee.full_name', read_only=True)
    service_name = serializers.CharField(source='service.name', read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id',
            'client',
            'client_name',
            'employee',
            'employee_name',
            'service',
            'service_name',
            'date',
            'start_time',
            'end_time',
            'duration',
            'status',
            'price',
            'business',
            'comment',
            'created_at',
        ]
        read_only_fields = fields


class AppointmentUpdateSerializer(serializers.Serializer):
    """
    Изменение записи из панели: статус, комментарий или перенос.
    Перенос (date/start_time/employee) проходит полную проверку слота.
    """
    status = serializers.ChoiceField(choices=AppointmentStatus.ALL, required=False)
    comment = serializers.CharField(required=False, allow_blank=True)
    date = serializers.DateField(required=False, input_formats=['%Y-%m-%d'])
    start_time = serializers.RegexField(HHMM_RE, required=False)
    employee = serializers.PrimaryKeyRelatedField(queryset=StaffMember.objects.all(), required=False)

    def validate_employee(self, value):
        business = self.context.get('business')
        if business and value.business_id != business.id:
            raise serializers.ValidationError("Сотрудник не найден")
        return value

    @property
    def is_reschedule(self):
        return any(key in self.validated_data for key in ('date', 'start_time', 'employee'))


class ScheduleAppointmentSerializer(serializers.Serializer):
    """
    Запрос на запись из панели администратора.

    Дата и время принимаются строками и проверяются ядром расписания,
    чтобы ошибки формата возвращались как FormatError.
    """
    employee = serializers.PrimaryKeyRelatedField(queryset=StaffMember.objects.all())
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.all())
    client = serializers.PrimaryKeyRelatedField(queryset=Client.objects.all(), required=False, allow_null=True)
    date = serializers.CharField()
    start_time = serializers.CharField()
    comment = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        business = self.context.get('business')
        employee = attrs['employee']
        service = attrs['service']
        client = attrs.get('client')

        if business:
            if employee.business_id != business.id:
                raise serializers.ValidationError({'employee': 'Сотрудник не найден'})
            if service.business_id != business.id:
                raise serializers.ValidationError({'service': 'Услуга не найдена'})
            if client and client.business_id != business.id:
                raise serializers.ValidationError({'client': 'Клиент не найден'})

        if employee.services.exists() and not employee.services.filter(pk=service.pk).exists():
            raise serializers.ValidationError({'service': 'Сотрудник не выполняет эту услугу'})

        return attrs


class PublicBookingSerializer(serializers.Serializer):
    """Запрос на запись из публичной формы салона"""
    employee = serializers.PrimaryKeyRelatedField(queryset=StaffMember.objects.all())
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.all())
    date = serializers.CharField()
    start_time = serializers.CharField()
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    comment = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_name(self, value):
        if len(value.strip()) < 2:
            raise serializers.ValidationError("Имя должно содержать минимум 2 символа")
        return value.strip()

    def validate(self, attrs):
        business = self.context['business']
        if not attrs.get('email') and not attrs.get('phone'):
            raise serializers.ValidationError("Укажите email или телефон для связи")
        if attrs['employee'].business_id != business.id:
            raise serializers.ValidationError({'employee': 'Сотрудник не найден'})
        if attrs['service'].business_id != business.id:
            raise serializers.ValidationError({'service': 'Услуга не найдена'})
        employee = attrs['employee']
        if employee.services.exists() and not employee.services.filter(pk=attrs['service'].pk).exists():
            raise serializers.ValidationError({'service': 'Сотрудник не выполняет эту услугу'})
        return attrs


class RegisterSerializer(serializers.Serializer):
    """Регистрация владельца: пользователь, салон и профиль администратора"""
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8, style={'input_type': 'password'})
    full_name = serializers.CharField(max_length=200)
    business_name = serializers.CharField(max_length=200)

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("Пользователь с таким именем уже существует")
        return value

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email уже используется")
        return value.lower()

    def create(self, validated_data):
        with transaction.atomic():
            user = User.objects.create_user(
                username=validated_data['username'],
                email=validated_data['email'],
                password=validated_data['password'],
            )
            business = Business.objects.create(
                name=validated_data['business_name'],
                owner=user,
                email=validated_data['email'],
            )
            staff = StaffMember.objects.create(
                user=user,
                business=business,
                full_name=validated_data['full_name'],
                role=StaffMember.ROLE_ADMIN,
            )
        logger.info(f"Business registered: business_id={business.id}, owner={user.username}")
        return staff
