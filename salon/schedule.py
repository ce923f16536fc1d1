"""
Структуры данных ядра расписания: недельный график, существующие записи,
запрос на бронирование и зарезервированная запись.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Optional
import datetime

from .exceptions import ScheduleConfigError
from .timeutils import day_of_week_iso, parse_date, to_minutes


class AppointmentStatus:
    PENDING = 'Pending'
    CONFIRMED = 'Confirmed'
    ARRIVED = 'Arrived'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'
    NO_SHOW = 'No-Show'

    ALL = [PENDING, CONFIRMED, ARRIVED, COMPLETED, CANCELLED, NO_SHOW]

    # Отменённые записи не занимают время специалиста
    INACTIVE = [CANCELLED]


DAY_NAMES = {
    1: 'Понедельник',
    2: 'Вторник',
    3: 'Среда',
    4: 'Четверг',
    5: 'Пятница',
    6: 'Суббота',
    7: 'Воскресенье',
}

DEFAULT_START_TIME = '09:00'
DEFAULT_END_TIME = '17:00'
DEFAULT_BREAK = ('12:00', '13:00')


@dataclass
class DaySchedule:
    """Рабочие часы специалиста в один день недели"""
    day_of_week: int
    is_working: bool
    start_time: str = DEFAULT_START_TIME
    end_time: str = DEFAULT_END_TIME
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    @property
    def has_break(self) -> bool:
        return bool(self.break_start and self.break_end)

    def validate(self):
        """
        Проверяет инварианты дня. Вызывается при редактировании графика,
        расчёт слотов на неё не опирается.
        """
        if self.day_of_week not in DAY_NAMES:
            raise ScheduleConfigError(f"День недели должен быть от 1 до 7, получено {self.day_of_week}")

        start = to_minutes(self.start_time)
        end = to_minutes(self.end_time)
        if self.is_working and start >= end:
            raise ScheduleConfigError(
                f"{DAY_NAMES[self.day_of_week]}: время окончания должно быть больше времени начала"
            )

        if bool(self.break_start) != bool(self.break_end):
            raise ScheduleConfigError(
                f"{DAY_NAMES[self.day_of_week]}: укажите и начало, и окончание перерыва"
            )
        if self.has_break:
            break_start = to_minutes(self.break_start)
            break_end = to_minutes(self.break_end)
            if not start <= break_start < break_end <= end:
                raise ScheduleConfigError(
                    f"{DAY_NAMES[self.day_of_week]}: перерыв должен быть внутри рабочего времени"
                )


class WeeklySchedule:
    """Недельный график специалиста, индексированный по дню недели ISO"""

    def __init__(self, days: Iterable[DaySchedule] = (), employee_id=None):
        self.employee_id = employee_id
        self.days: Dict[int, DaySchedule] = {}
        for day in days:
            if day.day_of_week in self.days:
                raise ScheduleConfigError(f"День недели {day.day_of_week} указан дважды")
            self.days[day.day_of_week] = day

    def __getitem__(self, day_of_week):
        return self.days[day_of_week]

    def __iter__(self):
        return iter(sorted(self.days.values(), key=lambda d: d.day_of_week))

    def __len__(self):
        return len(self.days)

    def get(self, day_of_week) -> Optional[DaySchedule]:
        return self.days.get(day_of_week)

    def for_day(self, date: datetime.date) -> Optional[DaySchedule]:
        return self.days.get(day_of_week_iso(date))

    def validate(self):
        for day in self:
            day.validate()


def default_weekly_schedule(employee_id=None) -> WeeklySchedule:
    """Пн–Пт 09:00–17:00, суббота и воскресенье: выходные"""
    return WeeklySchedule(
        [DaySchedule(day_of_week=day, is_working=day <= 5) for day in range(1, 8)],
        employee_id=employee_id,
    )


@dataclass(frozen=True)
class ExistingAppointment:
    """Уже существующая запись специалиста, как её видит ядро"""
    employee_id: object
    date: datetime.date
    start_time: str
    end_time: str
    duration: int

    @property
    def interval(self):
        start = to_minutes(self.start_time)
        return start, start + self.duration

    def is_for(self, employee_id, date: datetime.date) -> bool:
        if employee_id is not None and self.employee_id != employee_id:
            return False
        return parse_date(self.date) == date


@dataclass
class ProposedBooking:
    employee_id: object
    service_id: object
    date: object
    start_time: str
    client_id: object = None
    business_id: object = None
    price: object = None
    comment: str = ''


@dataclass
class ReservedAppointment:
    """Проверенная запись, готовая к сохранению (id назначает хранилище)"""
    employee_id: object
    service_id: object
    date: datetime.date
    start_time: str
    end_time: str
    duration: int
    status: str = AppointmentStatus.PENDING
    client_id: object = None
    business_id: object = None
    price: object = None
    comment: str = ''
