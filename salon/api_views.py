"""
API views для Django REST Framework
"""
from django.db import transaction
from django.db.models import ProtectedError, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken
from decimal import Decimal
import csv
import logging

from .exceptions import BookingError, FormatError
from .forms import ReportForm
from .log_utils import get_appointment_changes, log_appointment_action, snapshot_appointment
from .models import Appointment, Business, Client, Service, ServiceCategory, StaffMember, SystemSettings
from .schedule import AppointmentStatus
from .serializers import (
    AppointmentSerializer,
    AppointmentUpdateSerializer,
    ClientSerializer,
    PublicBookingSerializer,
    PublicStaffSerializer,
    RegisterSerializer,
    ScheduleAppointmentSerializer,
    ServiceCategorySerializer,
    ServiceSerializer,
    StaffMemberCreateSerializer,
    StaffMemberSerializer,
    WeeklyScheduleSerializer,
)
from .timeutils import parse_date, time_to_hhmm
from .utils import (
    appointment_summary,
    find_available_slots,
    find_or_create_client,
    get_weekly_schedule,
    reactivate_appointment,
    replace_weekly_schedule,
    reschedule_appointment,
    reserve_appointment,
)

logger = logging.getLogger(__name__)


def booking_error_response(error):
    """JSON-ответ для ошибки бронирования с её HTTP-статусом"""
    return Response(error.as_dict(), status=error.status_code)


def protected_error_response(message):
    return Response({'error': message, 'code': 'protected'}, status=status.HTTP_409_CONFLICT)


class IsBusinessMember(permissions.BasePermission):
    """
    Разрешение для сотрудников салона: доступ только к данным своего салона
    """
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False

        try:
            request.user.staff_profile
            return True
        except StaffMember.DoesNotExist:
            logger.warning(f"User {request.user.id} attempted to access salon API without staff profile")
            return False


class IsBusinessAdminOrReadOnly(permissions.BasePermission):
    """
    Изменение справочников и графиков доступно только администратору салона
    """
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.staff_profile.is_admin


class BusinessScopedMixin:
    """Ограничивает queryset салоном текущего сотрудника"""
    permission_classes = [permissions.IsAuthenticated, IsBusinessMember]

    def get_business(self):
        return self.request.user.staff_profile.business

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['business'] = self.get_business()
        return context

    def get_queryset(self):
        return super().get_queryset().filter(business=self.get_business())

    def perform_create(self, serializer):
        serializer.save(business=self.get_business())


class RegisterAPI(generics.CreateAPIView):
    """
    Регистрация владельца салона.

    Endpoint: POST /api/v1/register/

    Response: профиль администратора и пара JWT-токенов
    """
    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        staff = serializer.save()
        refresh = RefreshToken.for_user(staff.user)
        return Response({
            'staff': StaffMemberSerializer(staff).data,
            'business': {'id': staff.business.id, 'name': staff.business.name},
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        }, status=status.HTTP_201_CREATED)


class ServiceCategoryListCreateAPI(BusinessScopedMixin, generics.ListCreateAPIView):
    queryset = ServiceCategory.objects.all()
    serializer_class = ServiceCategorySerializer
    permission_classes = BusinessScopedMixin.permission_classes + [IsBusinessAdminOrReadOnly]


class ServiceCategoryDetailAPI(BusinessScopedMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = ServiceCategory.objects.all()
    serializer_class = ServiceCategorySerializer
    permission_classes = BusinessScopedMixin.permission_classes + [IsBusinessAdminOrReadOnly]


class ServiceListCreateAPI(BusinessScopedMixin, generics.ListCreateAPIView):
    """
    Услуги салона.

    Endpoint: GET/POST /api/v1/services/?category=<id>
    """
    queryset = Service.objects.select_related('category')
    serializer_class = ServiceSerializer
    permission_classes = BusinessScopedMixin.permission_classes + [IsBusinessAdminOrReadOnly]

    def get_queryset(self):
        queryset = super().get_queryset()
        category = self.request.query_params.get('category')
        if category and category.isdigit():
            queryset = queryset.filter(category_id=category)
        return queryset


class ServiceDetailAPI(BusinessScopedMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Service.objects.select_related('category')
    serializer_class = ServiceSerializer
    permission_classes = BusinessScopedMixin.permission_classes + [IsBusinessAdminOrReadOnly]

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return protected_error_response('Нельзя удалить услугу, на которую есть записи')


class ClientListCreateAPI(BusinessScopedMixin, generics.ListCreateAPIView):
    """
    Клиенты салона.

    Endpoint: GET/POST /api/v1/clients/?search=<строка>
    """
    queryset = Client.objects.all()
    serializer_class = ClientSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(phone__icontains=search) | Q(email__icontains=search)
            )
        return queryset


class ClientDetailAPI(BusinessScopedMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Client.objects.all()
    serializer_class = ClientSerializer

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except ProtectedError:
            return protected_error_response('Нельзя удалить клиента, у которого есть записи')


class StaffListCreateAPI(BusinessScopedMixin, generics.ListCreateAPIView):
    """
    Сотрудники салона. Новому сотруднику автоматически назначается график по умолчанию.

    Endpoint: GET/POST /api/v1/staff/
    """
    queryset = StaffMember.objects.select_related('user').prefetch_related('services')
    permission_classes = BusinessScopedMixin.permission_classes + [IsBusinessAdminOrReadOnly]

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return StaffMemberCreateSerializer
        return StaffMemberSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        staff = serializer.save(business=self.get_business())
        logger.info(f"Staff member created: {staff.id} by {request.user.username}")
        return Response(StaffMemberSerializer(staff).data, status=status.HTTP_201_CREATED)


class StaffDetailAPI(BusinessScopedMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = StaffMember.objects.select_related('user').prefetch_related('services')
    serializer_class = StaffMemberSerializer
    permission_classes = BusinessScopedMixin.permission_classes + [IsBusinessAdminOrReadOnly]

    def destroy(self, request, *args, **kwargs):
        staff = self.get_object()
        if staff.user_id == request.user.id:
            return Response({'error': 'Нельзя удалить собственный профиль'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            user = staff.user
            staff.delete()
            user.delete()
        except ProtectedError:
            return protected_error_response('Нельзя удалить сотрудника, у которого есть записи')
        return Response(status=status.HTTP_204_NO_CONTENT)


class StaffScopedAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsBusinessMember]

    def get_staff(self, pk):
        return get_object_or_404(
            StaffMember,
            pk=pk,
            business=self.request.user.staff_profile.business
        )


class WorkingHoursAPI(StaffScopedAPIView):
    """
    Недельный график сотрудника.

    Endpoint: GET/PUT /api/v1/staff/<id>/working-hours/

    PUT заменяет график целиком:
    {"days": [{"day_of_week": 1, "is_working": true, "start_time": "09:00",
               "end_time": "17:00", "break_start": "12:00", "break_end": "13:00"}, ...]}
    """
    permission_classes = StaffScopedAPIView.permission_classes + [IsBusinessAdminOrReadOnly]

    def get(self, request, pk):
        staff = self.get_staff(pk)
        return Response(WeeklyScheduleSerializer(get_weekly_schedule(staff)).data)

    def put(self, request, pk):
        staff = self.get_staff(pk)
        serializer = WeeklyScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        schedule = replace_weekly_schedule(staff, list(serializer.validated_data['schedule']))
        logger.info(f"Working hours updated for staff {staff.id} by {request.user.username}")
        return Response(WeeklyScheduleSerializer(schedule).data)


def availability_payload(staff, service, date, slots):
    return {
        'employee': staff.id,
        'service': service.id,
        'date': date,
        'duration': service.duration_minutes,
        'slots': slots,
    }


def get_service_from_query(request, business):
    service_id = request.query_params.get('service', '')
    if not service_id.isdigit():
        return None
    return get_object_or_404(Service, pk=service_id, business=business)


class StaffAvailabilityAPI(StaffScopedAPIView):
    """
    Свободное время сотрудника для услуги.

    Endpoint: GET /api/v1/staff/<id>/availability/?date=YYYY-MM-DD&service=<id>

    Response:
    {"employee": 1, "service": 2, "date": "2030-01-07", "duration": 45,
     "slots": ["09:00", "09:30", ...]}
    """

    def get(self, request, pk):
        staff = self.get_staff(pk)
        service = get_service_from_query(request, staff.business)
        if service is None:
            return Response({'error': 'Не указана услуга'}, status=status.HTTP_400_BAD_REQUEST)

        date = request.query_params.get('date', '')
        try:
            slots = find_available_slots(staff, service, date)
        except BookingError as e:
            return booking_error_response(e)

        return Response(availability_payload(staff, service, date, slots))


class AppointmentListAPI(BusinessScopedMixin, generics.ListAPIView):
    """
    Записи салона для календаря.

    Endpoint: GET /api/v1/appointments/?date=YYYY-MM-DD&start=&end=&employee=<id>&status=<статус>
    """
    queryset = Appointment.objects.select_related('client', 'employee', 'service')
    serializer_class = AppointmentSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params

        if params.get('date'):
            queryset = queryset.filter(date=parse_date(params['date']))
        if params.get('start'):
            queryset = queryset.filter(date__gte=parse_date(params['start']))
        if params.get('end'):
            queryset = queryset.filter(date__lte=parse_date(params['end']))
        if params.get('employee', '').isdigit():
            queryset = queryset.filter(employee_id=params['employee'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])

        return queryset.order_by('date', 'start_time')

    def list(self, request, *args, **kwargs):
        try:
            return super().list(request, *args, **kwargs)
        except FormatError as e:
            return booking_error_response(e)


class AppointmentDetailAPI(BusinessScopedMixin, generics.RetrieveDestroyAPIView):
    """
    Запись: просмотр, изменение статуса/комментария, перенос, удаление.

    Endpoint: GET/PATCH/DELETE /api/v1/appointments/<id>/
    """
    queryset = Appointment.objects.select_related('client', 'employee', 'service')
    serializer_class = AppointmentSerializer

    def patch(self, request, *args, **kwargs):
        appointment = self.get_object()
        serializer = AppointmentUpdateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        old_values = snapshot_appointment(appointment)

        # Отменённая запись освобождала время: возврат в работу проверяется как новая запись
        reactivating = (
            appointment.status in AppointmentStatus.INACTIVE
            and data.get('status', appointment.status) not in AppointmentStatus.INACTIVE
        )

        try:
            with transaction.atomic():
                if serializer.is_reschedule:
                    reschedule_appointment(
                        appointment,
                        date=data.get('date'),
                        start_time=data.get('start_time'),
                        employee=data.get('employee'),
                    )
                if reactivating:
                    reactivate_appointment(appointment, data['status'])
        except BookingError as e:
            return booking_error_response(e)

        update_fields = []
        if 'status' in data and data['status'] != appointment.status:
            appointment.status = data['status']
            update_fields.append('status')
        if 'comment' in data:
            appointment.comment = data['comment']
            update_fields.append('comment')
        if update_fields:
            appointment.save(update_fields=update_fields + ['updated_at'])

        old_changes, new_changes = get_appointment_changes(old_values, snapshot_appointment(appointment))
        if new_changes:
            if serializer.is_reschedule and ('date' in new_changes or 'start_time' in new_changes
                                             or 'employee_id' in new_changes):
                action = 'rescheduled'
            elif list(new_changes) == ['status']:
                action = 'status_changed'
            else:
                action = 'updated'
            log_appointment_action(
                appointment=appointment,
                action=action,
                user=request.user,
                message=f'Запись изменена: {", ".join(new_changes)}',
                old_values=old_changes,
                new_values=new_changes,
                request=request
            )

        return Response(AppointmentSerializer(appointment).data)

    def perform_destroy(self, instance):
        log_appointment_action(
            appointment=instance,
            action='deleted',
            user=self.request.user,
            message=f'Удалена запись {instance.date} {time_to_hhmm(instance.start_time)}',
            old_values=snapshot_appointment(instance),
            request=self.request
        )
        logger.info(f"Appointment {instance.id} deleted by {self.request.user.username}")
        instance.delete()


class ScheduleAppointmentAPI(APIView):
    """
    Создание записи с проверкой слота на сервере.

    Endpoint: POST /api/v1/schedule-appointment/

    Request:
    {"employee": 1, "service": 2, "client": 3, "date": "2030-01-07", "start_time": "10:00", "comment": ""}

    Ответы: 201 - запись создана, 400 - неверные данные, 409 - время уже занято,
    422 - слот недоступен или сотрудник не работает
    """
    permission_classes = [permissions.IsAuthenticated, IsBusinessMember]

    def post(self, request):
        business = request.user.staff_profile.business
        serializer = ScheduleAppointmentSerializer(data=request.data, context={'business': business})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            appointment = reserve_appointment(
                staff=data['employee'],
                service=data['service'],
                date=data['date'],
                start_time=data['start_time'],
                client=data.get('client'),
                comment=data.get('comment', ''),
                created_by=request.user,
            )
        except BookingError as e:
            logger.info(f"Appointment rejected: {e.code} ({e.message}) by {request.user.username}")
            return booking_error_response(e)

        log_appointment_action(
            appointment=appointment,
            action='created',
            user=request.user,
            message=f'Создана запись на {appointment.date} {time_to_hhmm(appointment.start_time)}',
            new_values=snapshot_appointment(appointment),
            request=request
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)


class ReportSummaryAPI(APIView):
    """
    Сводка для панели: записи по статусам, выручка, популярность услуг, загрузка сотрудников.

    Endpoint: GET /api/v1/reports/summary/?start=YYYY-MM-DD&end=YYYY-MM-DD&employee=<id>
    """
    permission_classes = [permissions.IsAuthenticated, IsBusinessMember]

    def get(self, request):
        business = request.user.staff_profile.business
        form = ReportForm(request.query_params, business=business)
        if not form.is_valid():
            return Response({'error': 'Неверные параметры отчета', 'errors': form.errors},
                            status=status.HTTP_400_BAD_REQUEST)

        return Response(appointment_summary(
            business,
            form.cleaned_data['start'],
            form.cleaned_data['end'],
            employee=form.cleaned_data.get('employee'),
        ))


class ReportExportAPI(APIView):
    """
    Скачивание отчета по записям в формате CSV

    Endpoint: GET /api/v1/reports/export/?start=YYYY-MM-DD&end=YYYY-MM-DD&employee=<id>
    """
    permission_classes = [permissions.IsAuthenticated, IsBusinessMember]

    def get(self, request):
        business = request.user.staff_profile.business
        form = ReportForm(request.query_params, business=business)
        if not form.is_valid():
            return Response({'error': 'Неверные параметры отчета', 'errors': form.errors},
                            status=status.HTTP_400_BAD_REQUEST)

        start = form.cleaned_data['start']
        end = form.cleaned_data['end']
        employee = form.cleaned_data.get('employee')

        appointments = Appointment.objects.filter(
            business=business,
            date__range=[start, end],
        ).select_related('client', 'employee', 'service').order_by('date', 'start_time')
        if employee:
            appointments = appointments.filter(employee=employee)

        response = HttpResponse(content_type='text/csv; charset=utf-8')
        filename = f'report_{start.strftime("%Y-%m-%d")}_{end.strftime("%Y-%m-%d")}.csv'
        response['Content-Disposition'] = f'attachment; filename="{filename}"'

        # UTF-8 BOM для корректного отображения в Excel
        response.write('\ufeff')
        writer = csv.writer(response, delimiter=';')
        writer.writerow([
            'Дата',
            'Время начала',
            'Время окончания',
            'Клиент',
            'Услуга',
            'Длительность (мин)',
            'Стоимость',
            'Сотрудник',
            'Статус',
        ])

        total_cost = Decimal('0')
        count = 0
        for appointment in appointments:
            count += 1
            if appointment.is_active:
                total_cost += appointment.price
            writer.writerow([
                appointment.date.strftime('%d.%m.%Y'),
                time_to_hhmm(appointment.start_time),
                time_to_hhmm(appointment.end_time),
                appointment.client.name if appointment.client else '',
                appointment.service.name,
                appointment.duration,
                str(appointment.price).replace('.', ','),
                appointment.employee.full_name,
                appointment.get_status_display(),
            ])

        writer.writerow([])
        writer.writerow(['ИТОГО:', '', '', '', '', '', str(total_cost).replace('.', ','), '', ''])

        logger.info(f"Report downloaded: period={start} to {end}, employee={employee.full_name if employee else 'all'}, appointments={count}")
        return response


class PublicBusinessAPIView(APIView):
    """Базовый класс публичной формы записи салона"""
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get_business(self, business_id):
        return get_object_or_404(Business, pk=business_id)


class PublicServicesAPI(PublicBusinessAPIView):
    """Endpoint: GET /api/v1/public/<business_id>/services/"""

    def get(self, request, business_id):
        business = self.get_business(business_id)
        services = Service.objects.filter(business=business).select_related('category')
        return Response(ServiceSerializer(services, many=True).data)


class PublicStaffAPI(PublicBusinessAPIView):
    """Endpoint: GET /api/v1/public/<business_id>/staff/?service=<id>"""

    def get(self, request, business_id):
        business = self.get_business(business_id)
        staff = StaffMember.objects.filter(business=business).prefetch_related('services')
        service = get_service_from_query(request, business)
        if service is not None:
            staff = [member for member in staff
                     if not member.services.all() or service in member.services.all()]
        return Response(PublicStaffSerializer(staff, many=True).data)


class PublicAvailabilityAPI(PublicBusinessAPIView):
    """Endpoint: GET /api/v1/public/<business_id>/availability/?employee=<id>&service=<id>&date=YYYY-MM-DD"""

    def get(self, request, business_id):
        business = self.get_business(business_id)
        employee_id = request.query_params.get('employee', '')
        service = get_service_from_query(request, business)
        if not employee_id.isdigit() or service is None:
            return Response({'error': 'Не указан сотрудник или услуга'}, status=status.HTTP_400_BAD_REQUEST)
        staff = get_object_or_404(StaffMember, pk=employee_id, business=business)

        date = request.query_params.get('date', '')
        try:
            slots = find_available_slots(staff, service, date)
        except BookingError as e:
            return booking_error_response(e)

        return Response(availability_payload(staff, service, date, slots))


class PublicBookingAPI(PublicBusinessAPIView):
    """
    Запись клиента через публичную форму. Клиент находится по email/телефону или создаётся.

    Endpoint: POST /api/v1/public/<business_id>/book/
    """

    def post(self, request, business_id):
        business = self.get_business(business_id)
        if not SystemSettings.get_solo().public_booking_enabled:
            return Response({'error': 'Онлайн-запись временно недоступна'}, status=status.HTTP_403_FORBIDDEN)

        serializer = PublicBookingSerializer(data=request.data, context={'business': business})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        client, created = find_or_create_client(
            business,
            name=data['name'],
            email=data.get('email'),
            phone=data.get('phone'),
        )

        try:
            appointment = reserve_appointment(
                staff=data['employee'],
                service=data['service'],
                date=data['date'],
                start_time=data['start_time'],
                client=client,
                comment=data.get('comment', ''),
            )
        except BookingError as e:
            logger.info(f"Public booking rejected: business={business.id}, {e.code} ({e.message})")
            return booking_error_response(e)

        log_appointment_action(
            appointment=appointment,
            action='created',
            user=None,
            message=f'Онлайн-запись клиента {client.name}',
            new_values=snapshot_appointment(appointment),
            request=request
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)
