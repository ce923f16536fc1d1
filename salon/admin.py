from django.contrib import admin
from solo.admin import SingletonModelAdmin

from .forms import WorkingHoursForm
from .models import (
    SystemSettings,
    Business,
    ServiceCategory,
    Service,
    StaffMember,
    WorkingHours,
    Client,
    Appointment,
    AppointmentLog,
)
from .utils import format_duration


class WorkingHoursInline(admin.TabularInline):
    """Inline для недельного графика сотрудника"""
    model = WorkingHours
    form = WorkingHoursForm
    extra = 0
    max_num = 7
    fields = ('day_of_week', 'is_working', 'start_time', 'end_time', 'break_start', 'break_end')
    verbose_name = 'День графика'
    verbose_name_plural = 'График работы'


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ('name', 'owner', 'email', 'phone', 'created_at')
    search_fields = ('name', 'email')


@admin.register(ServiceCategory)
class ServiceCategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'business', 'color')
    list_filter = ('business',)


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'duration_display', 'price', 'business')
    list_filter = ('business', 'category')
    search_fields = ('name',)

    def duration_display(self, obj):
        return format_duration(obj.duration_minutes)
    duration_display.short_description = 'Длительность'
    duration_display.admin_order_field = 'duration_minutes'


@admin.register(StaffMember)
class StaffMemberAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'user', 'role', 'business')
    list_filter = ('business', 'role')
    filter_horizontal = ('services',)
    inlines = [WorkingHoursInline]


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('name', 'phone', 'email', 'total_visits', 'last_visit', 'business')
    list_filter = ('business',)
    search_fields = ('name', 'phone', 'email')
    readonly_fields = ('total_visits', 'last_visit', 'created_at')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('date', 'start_time', 'end_time', 'client', 'service', 'employee', 'status')
    list_filter = ('status', 'employee', 'date')
    search_fields = ('client__name', 'service__name', 'employee__full_name')
    readonly_fields = ('end_time', 'duration', 'created_by', 'created_at', 'updated_at')
    date_hierarchy = 'date'


@admin.register(AppointmentLog)
class AppointmentLogAdmin(admin.ModelAdmin):
    """Admin для журнала записей"""
    list_display = ('appointment', 'action', 'user', 'created_at', 'message_short')
    list_filter = ('action', 'created_at', 'user')
    search_fields = ('appointment__client__name', 'message', 'user__username')
    readonly_fields = ('appointment', 'action', 'user', 'message', 'old_values', 'new_values', 'created_at', 'ip_address')
    date_hierarchy = 'created_at'
    ordering = ('-created_at',)

    fieldsets = (
        ('Основная информация', {
            'fields': ('appointment', 'action', 'user', 'message', 'created_at', 'ip_address')
        }),
        ('Детали изменений', {
            'fields': ('old_values', 'new_values'),
            'classes': ('collapse',)
        }),
    )

    def message_short(self, obj):
        if obj.message:
            return obj.message[:50] + '...' if len(obj.message) > 50 else obj.message
        return '-'
    message_short.short_description = 'Сообщение'

    def has_add_permission(self, request):
        """Журнал заполняется только приложением"""
        return False

    def has_change_permission(self, request, obj=None):
        return False


admin.site.register(SystemSettings, SingletonModelAdmin)
