"""
Общие данные для тестов
"""
import datetime

from django.contrib.auth.models import User

from salon.models import Business, Client, Service, StaffMember
from salon.schedule import DaySchedule, ExistingAppointment, WeeklySchedule

EMPLOYEE_ID = 1

# Понедельник и воскресенье далеко в будущем: тесты не зависят от текущей даты
MONDAY = datetime.date(2030, 1, 7)
SUNDAY = datetime.date(2030, 1, 13)

BEFORE_MONDAY = datetime.datetime(2030, 1, 1, 8, 0)


def make_schedule(start='09:00', end='17:00', break_start=None, break_end=None, employee_id=EMPLOYEE_ID):
    """Пн–Сб с одинаковыми часами, воскресенье выходной"""
    days = [
        DaySchedule(day, True, start, end, break_start, break_end) for day in range(1, 7)
    ]
    days.append(DaySchedule(7, False))
    return WeeklySchedule(days, employee_id=employee_id)


def appointment(start, end, duration=None, date=MONDAY, employee_id=EMPLOYEE_ID):
    if duration is None:
        duration = (int(end[:2]) * 60 + int(end[3:])) - (int(start[:2]) * 60 + int(start[3:]))
    return ExistingAppointment(
        employee_id=employee_id,
        date=date,
        start_time=start,
        end_time=end,
        duration=duration,
    )


def at(date, hhmm):
    hours, minutes = map(int, hhmm.split(':'))
    return datetime.datetime.combine(date, datetime.time(hours, minutes))


def make_salon(username='owner', service_duration=60, price='1500.00'):
    """Салон с администратором, одной услугой и клиентом"""
    user = User.objects.create_user(username=username, password='password123', email=f'{username}@example.com')
    business = Business.objects.create(name=f'Салон {username}', owner=user)
    staff = StaffMember.objects.create(
        user=user,
        business=business,
        full_name='Анна Смирнова',
        role=StaffMember.ROLE_ADMIN,
    )
    service = Service.objects.create(
        business=business,
        name='Стрижка',
        duration_minutes=service_duration,
        price=price,
    )
    client = Client.objects.create(business=business, name='Мария Петрова', phone='+79990000001')
    return business, staff, service, client


def make_staff(business, username, role='staff'):
    user = User.objects.create_user(username=username, password='password123')
    return StaffMember.objects.create(user=user, business=business, full_name=username.title(), role=role)
