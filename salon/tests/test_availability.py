from django.test import SimpleTestCase

from salon.availability import compute_available_slots
from salon.exceptions import FormatError, InvalidDurationError
from salon.schedule import DaySchedule, WeeklySchedule

from .helpers import BEFORE_MONDAY, MONDAY, SUNDAY, appointment, at, make_schedule


class ComputeAvailableSlotsTests(SimpleTestCase):

    def slots(self, schedule=None, date=MONDAY, duration=30, existing=(), now=BEFORE_MONDAY, **kwargs):
        return compute_available_slots(
            schedule or make_schedule(),
            date,
            duration,
            list(existing),
            now,
            **kwargs
        )

    def test_full_free_day(self):
        slots = self.slots()
        self.assertEqual(slots[0], '09:00')
        self.assertEqual(slots[-1], '16:30')
        self.assertEqual(len(slots), 16)
        self.assertEqual(slots, sorted(slots))

    def test_accepts_date_string(self):
        self.assertEqual(self.slots(date='2030-01-07'), self.slots(date=MONDAY))

    def test_day_off_returns_empty_list(self):
        self.assertEqual(self.slots(date=SUNDAY), [])

    def test_day_missing_from_schedule_returns_empty_list(self):
        schedule = WeeklySchedule([DaySchedule(2, True)], employee_id=1)
        self.assertEqual(self.slots(schedule=schedule), [])

    def test_duration_overrunning_closing_time_is_excluded(self):
        slots = self.slots(duration=45)
        self.assertNotIn('16:30', slots)
        self.assertEqual(slots[-1], '16:00')

    def test_break_exclusion(self):
        schedule = make_schedule(break_start='12:00', break_end='13:00')
        slots = self.slots(schedule=schedule, slot_granularity_minutes=15)

        self.assertIn('11:30', slots)
        for excluded in ['11:45', '12:00', '12:15', '12:30', '12:45']:
            self.assertNotIn(excluded, slots)
        self.assertIn('13:00', slots)

    def test_back_to_back_appointment_is_offered(self):
        slots = self.slots(existing=[appointment('09:00', '10:00')])
        self.assertNotIn('09:00', slots)
        self.assertNotIn('09:30', slots)
        self.assertEqual(slots[0], '10:00')

    def test_overlap_uses_start_plus_duration(self):
        # Запись 10:00 на 90 минут занимает время до 11:30
        slots = self.slots(duration=60, existing=[appointment('10:00', '11:30')])
        self.assertIn('09:00', slots)
        self.assertNotIn('09:30', slots)
        self.assertNotIn('11:00', slots)
        self.assertIn('11:30', slots)

    def test_foreign_appointments_are_ignored(self):
        existing = [
            appointment('10:00', '11:00', employee_id=2),
            appointment('10:00', '11:00', date=SUNDAY),
        ]
        self.assertIn('10:00', self.slots(existing=existing))

    def test_past_cutoff_today(self):
        slots = self.slots(now=at(MONDAY, '14:05'))
        self.assertNotIn('14:00', slots)
        self.assertEqual(slots[0], '14:30')

    def test_slot_starting_exactly_now_is_in_the_past(self):
        slots = self.slots(now=at(MONDAY, '14:00'))
        self.assertNotIn('14:00', slots)
        self.assertIn('14:30', slots)

    def test_lead_time_pushes_first_slot(self):
        slots = self.slots(now=at(MONDAY, '14:05'), lead_time_minutes=30)
        self.assertNotIn('14:30', slots)
        self.assertEqual(slots[0], '15:00')

    def test_past_date_has_no_slots(self):
        self.assertEqual(self.slots(now=at(SUNDAY, '08:00')), [])

    def test_granularity_controls_grid(self):
        slots = self.slots(slot_granularity_minutes=60)
        self.assertEqual(slots, ['09:00', '10:00', '11:00', '12:00', '13:00', '14:00', '15:00', '16:00'])

    def test_grid_is_anchored_to_opening_time(self):
        schedule = make_schedule(start='09:15', end='11:00')
        self.assertEqual(self.slots(schedule=schedule), ['09:15', '09:45', '10:15'])

    def test_invalid_duration(self):
        for duration in [0, -30, True, None]:
            with self.subTest(duration=duration):
                with self.assertRaises(InvalidDurationError):
                    self.slots(duration=duration)

    def test_invalid_granularity_and_lead_time(self):
        with self.assertRaises(InvalidDurationError):
            self.slots(slot_granularity_minutes=0)
        with self.assertRaises(InvalidDurationError):
            self.slots(lead_time_minutes=-1)

    def test_malformed_date(self):
        with self.assertRaises(FormatError):
            self.slots(date='07.01.2030')

    def test_malformed_schedule_time(self):
        schedule = make_schedule(start='9:00')
        with self.assertRaises(FormatError):
            self.slots(schedule=schedule)
