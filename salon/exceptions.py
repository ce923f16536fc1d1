"""
Исключения ядра расписания.

Каждое исключение бронирования несёт машинный код и HTTP-статус, который
API-слой использует при формировании ответа.
"""


class BookingError(Exception):
    """Базовая ошибка бронирования"""
    code = 'booking_error'
    status_code = 400
    default_message = 'Ошибка бронирования'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self):
        return {'error': self.message, 'code': self.code}


class FormatError(BookingError):
    """Некорректный формат даты или времени"""
    code = 'format_error'
    status_code = 400
    default_message = 'Неверный формат даты или времени'


class InvalidDurationError(BookingError):
    """Неположительная длительность услуги (ошибка данных услуги)"""
    code = 'invalid_duration'
    status_code = 500
    default_message = 'Некорректная длительность услуги'


class StaffNotWorkingError(BookingError):
    """Специалист не работает в выбранный день"""
    code = 'staff_not_working'
    status_code = 422
    default_message = 'Специалист не работает в этот день'


class SlotUnavailableError(BookingError):
    """Слот недоступен по одному из ограничений расписания"""
    code = 'slot_unavailable'
    status_code = 422

    OUTSIDE_HOURS = 'outside-hours'
    PAST_CLOSING = 'past-closing'
    BREAK_CONFLICT = 'break-conflict'
    IN_THE_PAST = 'in-the-past'
    OFF_GRID = 'off-grid'

    MESSAGES = {
        OUTSIDE_HOURS: 'Время вне рабочих часов специалиста',
        PAST_CLOSING: 'Услуга заканчивается после окончания рабочего дня',
        BREAK_CONFLICT: 'Время пересекается с перерывом специалиста',
        IN_THE_PAST: 'Выбранное время уже прошло',
        OFF_GRID: 'Время не совпадает с сеткой слотов',
    }

    def __init__(self, reason, message=None):
        self.reason = reason
        super().__init__(message or self.MESSAGES.get(reason, 'Выбранный слот недоступен'))

    def as_dict(self):
        data = super().as_dict()
        data['reason'] = self.reason
        return data


class ConflictError(BookingError):
    """Слот занят другим бронированием (проигранная гонка)"""
    code = 'conflict'
    status_code = 409
    default_message = 'Это время уже забронировано. Обновите список слотов и выберите другое время'


class ScheduleConfigError(ValueError):
    """Некорректная конфигурация рабочих часов"""
