"""
URL configuration for salon app
"""
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)

from . import api_views

app_name = 'salon'

urlpatterns = [
    # Аутентификация
    path('token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('register/', api_views.RegisterAPI.as_view(), name='register'),

    # Справочники салона
    path('service-categories/', api_views.ServiceCategoryListCreateAPI.as_view(), name='service_category_list'),
    path('service-categories/<int:pk>/', api_views.ServiceCategoryDetailAPI.as_view(), name='service_category_detail'),
    path('services/', api_views.ServiceListCreateAPI.as_view(), name='service_list'),
    path('services/<int:pk>/', api_views.ServiceDetailAPI.as_view(), name='service_detail'),
    path('clients/', api_views.ClientListCreateAPI.as_view(), name='client_list'),
    path('clients/<int:pk>/', api_views.ClientDetailAPI.as_view(), name='client_detail'),
    path('staff/', api_views.StaffListCreateAPI.as_view(), name='staff_list'),
    path('staff/<int:pk>/', api_views.StaffDetailAPI.as_view(), name='staff_detail'),
    path('staff/<int:pk>/working-hours/', api_views.WorkingHoursAPI.as_view(), name='staff_working_hours'),
    path('staff/<int:pk>/availability/', api_views.StaffAvailabilityAPI.as_view(), name='staff_availability'),

    # Записи
    path('appointments/', api_views.AppointmentListAPI.as_view(), name='appointment_list'),
    path('appointments/<int:pk>/', api_views.AppointmentDetailAPI.as_view(), name='appointment_detail'),
    path('schedule-appointment/', api_views.ScheduleAppointmentAPI.as_view(), name='schedule_appointment'),

    # Отчеты
    path('reports/summary/', api_views.ReportSummaryAPI.as_view(), name='report_summary'),
    path('reports/export/', api_views.ReportExportAPI.as_view(), name='report_export'),

    # Публичная запись
    path('public/<int:business_id>/services/', api_views.PublicServicesAPI.as_view(), name='public_services'),
    path('public/<int:business_id>/staff/', api_views.PublicStaffAPI.as_view(), name='public_staff'),
    path('public/<int:business_id>/availability/', api_views.PublicAvailabilityAPI.as_view(), name='public_availability'),
    path('public/<int:business_id>/book/', api_views.PublicBookingAPI.as_view(), name='public_book'),
]
