import random

from django.test import SimpleTestCase

from salon.availability import compute_available_slots
from salon.exceptions import (
    BookingError,
    ConflictError,
    FormatError,
    InvalidDurationError,
    SlotUnavailableError,
    StaffNotWorkingError,
)
from salon.schedule import AppointmentStatus, ExistingAppointment, ProposedBooking
from salon.timeutils import overlaps, to_hhmm
from salon.validation import validate_and_reserve

from .helpers import BEFORE_MONDAY, EMPLOYEE_ID, MONDAY, SUNDAY, appointment, at, make_schedule


def propose(start_time, date=MONDAY, employee_id=EMPLOYEE_ID):
    return ProposedBooking(
        employee_id=employee_id,
        service_id=10,
        date=date,
        start_time=start_time,
        client_id=20,
        business_id=30,
        price='1500.00',
        comment='первый визит',
    )


def reserved_as_existing(reserved):
    return ExistingAppointment(
        employee_id=reserved.employee_id,
        date=reserved.date,
        start_time=reserved.start_time,
        end_time=reserved.end_time,
        duration=reserved.duration,
    )


class ValidateAndReserveTests(SimpleTestCase):

    def reserve(self, start_time, schedule=None, existing=(), duration=30, now=BEFORE_MONDAY, date=MONDAY, **kwargs):
        return validate_and_reserve(
            propose(start_time, date=date),
            schedule or make_schedule(),
            list(existing),
            duration,
            now,
            **kwargs
        )

    def assertUnavailable(self, reason, *args, **kwargs):
        with self.assertRaises(SlotUnavailableError) as ctx:
            self.reserve(*args, **kwargs)
        self.assertEqual(ctx.exception.reason, reason)

    def test_successful_reservation(self):
        reserved = self.reserve('10:00', duration=45)

        self.assertEqual(reserved.employee_id, EMPLOYEE_ID)
        self.assertEqual(reserved.service_id, 10)
        self.assertEqual(reserved.client_id, 20)
        self.assertEqual(reserved.date, MONDAY)
        self.assertEqual(reserved.start_time, '10:00')
        self.assertEqual(reserved.end_time, '10:45')
        self.assertEqual(reserved.duration, 45)
        self.assertEqual(reserved.status, AppointmentStatus.PENDING)
        self.assertEqual(reserved.comment, 'первый визит')

    def test_day_off(self):
        for start_time in ['09:00', '12:00', '16:30']:
            with self.assertRaises(StaffNotWorkingError):
                self.reserve(start_time, date=SUNDAY)

    def test_outside_hours(self):
        self.assertUnavailable(SlotUnavailableError.OUTSIDE_HOURS, '08:30')
        self.assertUnavailable(SlotUnavailableError.OUTSIDE_HOURS, '17:00')

    def test_past_closing(self):
        self.assertUnavailable(SlotUnavailableError.PAST_CLOSING, '16:30', duration=45)
        self.assertEqual(self.reserve('16:00', duration=45).end_time, '16:45')

    def test_break_conflict(self):
        schedule = make_schedule(break_start='12:00', break_end='13:00')
        self.assertUnavailable(SlotUnavailableError.BREAK_CONFLICT, '11:45', schedule=schedule,
                               slot_granularity_minutes=15)
        self.assertUnavailable(SlotUnavailableError.BREAK_CONFLICT, '12:30', schedule=schedule)
        self.assertEqual(self.reserve('13:00', schedule=schedule).start_time, '13:00')

    def test_in_the_past(self):
        self.assertUnavailable(SlotUnavailableError.IN_THE_PAST, '14:00', now=at(MONDAY, '14:05'))
        self.assertEqual(self.reserve('14:30', now=at(MONDAY, '14:05')).start_time, '14:30')

    def test_lead_time(self):
        self.assertUnavailable(SlotUnavailableError.IN_THE_PAST, '14:30', now=at(MONDAY, '14:05'),
                               lead_time_minutes=30)

    def test_off_grid(self):
        self.assertUnavailable(SlotUnavailableError.OFF_GRID, '09:10')
        reserved = self.reserve('09:10', slot_granularity_minutes=None)
        self.assertEqual(reserved.end_time, '09:40')

    def test_conflict_with_existing_appointment(self):
        existing = [appointment('10:00', '11:00')]
        with self.assertRaises(ConflictError):
            self.reserve('10:30', existing=existing)
        with self.assertRaises(ConflictError):
            self.reserve('09:30', existing=existing, duration=60)

    def test_back_to_back_is_accepted(self):
        reserved = self.reserve('10:00', existing=[appointment('09:00', '10:00')])
        self.assertEqual(reserved.start_time, '10:00')

    def test_foreign_appointments_do_not_conflict(self):
        existing = [appointment('10:00', '11:00', employee_id=99)]
        self.assertEqual(self.reserve('10:00', existing=existing).start_time, '10:00')

    def test_format_errors(self):
        with self.assertRaises(FormatError):
            self.reserve('9:00')
        with self.assertRaises(FormatError):
            self.reserve('10:00', date='2030-13-01')

    def test_invalid_duration(self):
        with self.assertRaises(InvalidDurationError):
            self.reserve('10:00', duration=0)

    def test_errors_carry_http_status(self):
        with self.assertRaises(BookingError) as ctx:
            self.reserve('10:30', existing=[appointment('10:00', '11:00')])
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.as_dict()['code'], 'conflict')

        with self.assertRaises(SlotUnavailableError) as ctx:
            self.reserve('08:00')
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.as_dict()['reason'], 'outside-hours')

    def test_second_reservation_against_fresh_snapshot_conflicts(self):
        existing = []
        first = self.reserve('10:00', existing=existing)
        existing.append(reserved_as_existing(first))

        with self.assertRaises(ConflictError):
            self.reserve('10:00', existing=existing)


class CalculatorValidatorAgreementTests(SimpleTestCase):
    """Множество принятых валидатором времён совпадает с выдачей калькулятора"""

    CASES = [
        {'schedule': make_schedule(), 'duration': 30, 'existing': [], 'now': BEFORE_MONDAY},
        {'schedule': make_schedule(), 'duration': 45, 'existing': [appointment('10:00', '11:00')],
         'now': BEFORE_MONDAY},
        {'schedule': make_schedule(break_start='12:00', break_end='13:00'), 'duration': 60,
         'existing': [appointment('09:30', '10:15', duration=45)], 'now': at(MONDAY, '09:05')},
        {'schedule': make_schedule(start='08:15', end='20:00', break_start='13:10', break_end='13:40'),
         'duration': 50, 'existing': [appointment('15:00', '16:00')], 'now': at(MONDAY, '11:59'),
         'granularity': 15, 'lead': 20},
    ]

    def test_accepted_set_equals_calculated_set(self):
        for index, case in enumerate(self.CASES):
            granularity = case.get('granularity', 30)
            lead = case.get('lead', 0)
            with self.subTest(case=index):
                slots = compute_available_slots(
                    case['schedule'], MONDAY, case['duration'], case['existing'], case['now'],
                    slot_granularity_minutes=granularity, lead_time_minutes=lead,
                )

                accepted = []
                for minutes in range(0, 24 * 60, 5):
                    try:
                        validate_and_reserve(
                            propose(to_hhmm(minutes)), case['schedule'], case['existing'],
                            case['duration'], case['now'],
                            slot_granularity_minutes=granularity, lead_time_minutes=lead,
                        )
                    except BookingError:
                        continue
                    accepted.append(to_hhmm(minutes))

                self.assertEqual(accepted, slots)

    def test_accepted_appointments_never_overlap(self):
        schedule = make_schedule(break_start='12:00', break_end='13:00')
        existing = []
        candidates = [to_hhmm(minutes) for minutes in range(9 * 60, 17 * 60, 15)]
        random.Random(42).shuffle(candidates)

        for start_time in candidates:
            for duration in (30, 45, 75):
                try:
                    reserved = validate_and_reserve(
                        propose(start_time), schedule, existing, duration, BEFORE_MONDAY,
                        slot_granularity_minutes=15,
                    )
                except BookingError:
                    continue
                existing.append(reserved_as_existing(reserved))

        self.assertTrue(existing)
        for i, a in enumerate(existing):
            for b in existing[i + 1:]:
                self.assertFalse(overlaps(*a.interval, *b.interval), f'{a} overlaps {b}')
