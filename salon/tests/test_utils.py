import datetime
from decimal import Decimal
from io import StringIO
import threading
from unittest import mock

from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature

from salon.exceptions import ConflictError, ScheduleConfigError, SlotUnavailableError, StaffNotWorkingError
from salon.models import Appointment, Business, Client, StaffMember, SystemSettings, WorkingHours
from salon.schedule import AppointmentStatus, DaySchedule
from salon.utils import (
    appointment_summary,
    find_available_slots,
    find_or_create_client,
    format_duration,
    get_weekly_schedule,
    reactivate_appointment,
    replace_weekly_schedule,
    reschedule_appointment,
    reserve_appointment,
)

from .helpers import BEFORE_MONDAY, MONDAY, SUNDAY, at, make_salon, make_staff


class WorkingHoursStorageTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon()

    def test_new_staff_member_gets_default_schedule(self):
        rows = WorkingHours.objects.filter(staff=self.staff)
        self.assertEqual(rows.count(), 7)
        self.assertEqual(rows.filter(is_working=True).count(), 5)

        schedule = get_weekly_schedule(self.staff)
        self.assertEqual(schedule.employee_id, self.staff.id)
        self.assertEqual(schedule[1].start_time, '09:00')
        self.assertEqual(schedule[1].end_time, '17:00')
        self.assertFalse(schedule[7].is_working)

    def test_schedule_without_rows_falls_back_to_default(self):
        WorkingHours.objects.filter(staff=self.staff).delete()
        schedule = get_weekly_schedule(self.staff)
        self.assertEqual(len(schedule), 7)
        self.assertTrue(schedule.for_day(MONDAY).is_working)

    def test_replace_weekly_schedule(self):
        schedule = replace_weekly_schedule(self.staff, [
            DaySchedule(1, True, '10:00', '19:00', '14:00', '15:00'),
            DaySchedule(2, False),
        ])

        self.assertEqual(len(schedule), 2)
        self.assertEqual(WorkingHours.objects.filter(staff=self.staff).count(), 2)
        monday = WorkingHours.objects.get(staff=self.staff, day_of_week=1)
        self.assertEqual(monday.break_start, datetime.time(14, 0))
        self.assertEqual(schedule[1].break_end, '15:00')

    def test_invalid_schedule_keeps_previous_rows(self):
        with self.assertRaises(ScheduleConfigError):
            replace_weekly_schedule(self.staff, [DaySchedule(1, True, '18:00', '09:00')])
        self.assertEqual(WorkingHours.objects.filter(staff=self.staff).count(), 7)


class FindAvailableSlotsTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon(service_duration=60)

    def test_slots_exclude_active_appointments(self):
        reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        slots = find_available_slots(self.staff, self.service, '2030-01-07', now=BEFORE_MONDAY)

        self.assertIn('09:00', slots)
        self.assertNotIn('09:30', slots)
        self.assertNotIn('10:00', slots)
        self.assertNotIn('10:30', slots)
        self.assertIn('11:00', slots)
        self.assertEqual(slots[-1], '16:00')

    def test_cancelled_appointment_frees_the_slot(self):
        appointment = reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        appointment.status = AppointmentStatus.CANCELLED
        appointment.save()

        self.assertIn('10:00', find_available_slots(self.staff, self.service, MONDAY, now=BEFORE_MONDAY))

    def test_uses_system_settings(self):
        settings = SystemSettings.get_solo()
        settings.slot_granularity_minutes = 60
        settings.booking_lead_time_minutes = 60
        settings.save()

        slots = find_available_slots(self.staff, self.service, MONDAY, now=at(MONDAY, '10:30'))
        self.assertEqual(slots, ['12:00', '13:00', '14:00', '15:00', '16:00'])

    def test_day_off(self):
        self.assertEqual(find_available_slots(self.staff, self.service, SUNDAY, now=BEFORE_MONDAY), [])


class ReserveAppointmentTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon(service_duration=45, price='2000.00')

    def test_reserve_creates_pending_appointment(self):
        appointment = reserve_appointment(
            self.staff, self.service, '2030-01-07', '10:00',
            client=self.client_obj, comment='окрашивание', now=BEFORE_MONDAY,
        )

        appointment.refresh_from_db()
        self.assertEqual(appointment.business, self.business)
        self.assertEqual(appointment.employee, self.staff)
        self.assertEqual(appointment.client, self.client_obj)
        self.assertEqual(appointment.date, MONDAY)
        self.assertEqual(appointment.start_time, datetime.time(10, 0))
        self.assertEqual(appointment.end_time, datetime.time(10, 45))
        self.assertEqual(appointment.duration, 45)
        self.assertEqual(appointment.price, Decimal('2000.00'))
        self.assertEqual(appointment.status, AppointmentStatus.PENDING)
        self.assertEqual(appointment.comment, 'окрашивание')

    def test_second_request_for_same_slot_gets_conflict(self):
        # Оба клиента видели один и тот же список слотов
        slots_first = find_available_slots(self.staff, self.service, MONDAY, now=BEFORE_MONDAY)
        slots_second = find_available_slots(self.staff, self.service, MONDAY, now=BEFORE_MONDAY)
        self.assertIn('10:00', slots_first)
        self.assertIn('10:00', slots_second)

        reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        with self.assertRaises(ConflictError):
            reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)

        self.assertEqual(Appointment.objects.filter(employee=self.staff, date=MONDAY).count(), 1)

    def test_unique_constraint_is_reported_as_conflict(self):
        reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)

        # Устаревший снимок: валидатор не видит существующую запись
        with mock.patch('salon.utils.get_existing_appointments', return_value=[]):
            with self.assertRaises(ConflictError):
                reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)

        self.assertEqual(Appointment.objects.filter(employee=self.staff, date=MONDAY).count(), 1)

    def test_cancelled_slot_can_be_booked_again(self):
        first = reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        first.status = AppointmentStatus.CANCELLED
        first.save()

        second = reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        self.assertNotEqual(first.pk, second.pk)

    def test_rejections(self):
        with self.assertRaises(StaffNotWorkingError):
            reserve_appointment(self.staff, self.service, SUNDAY, '10:00', now=BEFORE_MONDAY)
        with self.assertRaises(SlotUnavailableError):
            reserve_appointment(self.staff, self.service, MONDAY, '16:30', now=BEFORE_MONDAY)
        self.assertFalse(Appointment.objects.exists())

    def test_manual_booking_off_grid(self):
        with self.assertRaises(SlotUnavailableError) as ctx:
            reserve_appointment(self.staff, self.service, MONDAY, '09:10', now=BEFORE_MONDAY)
        self.assertEqual(ctx.exception.reason, SlotUnavailableError.OFF_GRID)

        appointment = reserve_appointment(
            self.staff, self.service, MONDAY, '09:10', now=BEFORE_MONDAY, enforce_grid=False
        )
        self.assertEqual(appointment.end_time, datetime.time(9, 55))

    def test_different_staff_members_do_not_conflict(self):
        other = make_staff(self.business, 'master1')
        reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        reserve_appointment(other, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        self.assertEqual(Appointment.objects.filter(date=MONDAY).count(), 2)


class RescheduleAppointmentTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon(service_duration=60)
        self.appointment = reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)

    def test_overlapping_own_interval_is_allowed(self):
        reschedule_appointment(self.appointment, start_time='10:30', now=BEFORE_MONDAY)
        self.appointment.refresh_from_db()
        self.assertEqual(self.appointment.start_time, datetime.time(10, 30))
        self.assertEqual(self.appointment.end_time, datetime.time(11, 30))

    def test_conflict_with_another_appointment(self):
        reserve_appointment(self.staff, self.service, MONDAY, '12:00', now=BEFORE_MONDAY)
        with self.assertRaises(ConflictError):
            reschedule_appointment(self.appointment, start_time='11:30', now=BEFORE_MONDAY)
        self.appointment.refresh_from_db()
        self.assertEqual(self.appointment.start_time, datetime.time(10, 0))

    def test_move_to_another_staff_member_and_date(self):
        other = make_staff(self.business, 'master1')
        tuesday = MONDAY + datetime.timedelta(days=1)
        reschedule_appointment(self.appointment, date=tuesday, employee=other, now=BEFORE_MONDAY)

        self.appointment.refresh_from_db()
        self.assertEqual(self.appointment.employee, other)
        self.assertEqual(self.appointment.date, tuesday)
        self.assertEqual(self.appointment.start_time, datetime.time(10, 0))


class ReactivateAppointmentTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon(service_duration=60)
        self.appointment = reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
        self.appointment.status = AppointmentStatus.CANCELLED
        self.appointment.save()

    def test_free_slot_is_restored(self):
        reactivate_appointment(self.appointment, AppointmentStatus.CONFIRMED, now=BEFORE_MONDAY)
        self.appointment.refresh_from_db()
        self.assertEqual(self.appointment.status, AppointmentStatus.CONFIRMED)

    def test_overlapping_booking_blocks_restore(self):
        reserve_appointment(self.staff, self.service, MONDAY, '10:30', now=BEFORE_MONDAY)

        with self.assertRaises(ConflictError):
            reactivate_appointment(self.appointment, AppointmentStatus.PENDING, now=BEFORE_MONDAY)

        self.appointment.refresh_from_db()
        self.assertEqual(self.appointment.status, AppointmentStatus.CANCELLED)

    def test_unique_constraint_is_reported_as_conflict(self):
        reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)

        with mock.patch('salon.utils.get_existing_appointments', return_value=[]):
            with self.assertRaises(ConflictError):
                reactivate_appointment(self.appointment, AppointmentStatus.PENDING, now=BEFORE_MONDAY)

        self.assertEqual(self.appointment.status, AppointmentStatus.CANCELLED)
        self.appointment.refresh_from_db()
        self.assertEqual(self.appointment.status, AppointmentStatus.CANCELLED)


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentReservationTests(TransactionTestCase):

    def setUp(self):
        self.business, self.staff, self.service, _ = make_salon(service_duration=60)
        SystemSettings.get_solo()

    def test_only_one_of_two_simultaneous_requests_succeeds(self):
        barrier = threading.Barrier(2)
        results = []

        def book():
            try:
                barrier.wait()
                reserve_appointment(self.staff, self.service, MONDAY, '10:00', now=BEFORE_MONDAY)
                results.append('reserved')
            except ConflictError:
                results.append('conflict')
            finally:
                connection.close()

        threads = [threading.Thread(target=book) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(results), ['conflict', 'reserved'])
        self.assertEqual(Appointment.objects.filter(employee=self.staff, date=MONDAY).count(), 1)


class ClientVisitsSignalTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon()

    def test_completed_appointment_counts_once(self):
        appointment = reserve_appointment(
            self.staff, self.service, MONDAY, '10:00', client=self.client_obj, now=BEFORE_MONDAY
        )
        appointment.status = AppointmentStatus.COMPLETED
        appointment.save()
        appointment.comment = 'всё хорошо'
        appointment.save()

        self.client_obj.refresh_from_db()
        self.assertEqual(self.client_obj.total_visits, 1)
        self.assertEqual(self.client_obj.last_visit, MONDAY)

    def test_other_statuses_do_not_count(self):
        appointment = reserve_appointment(
            self.staff, self.service, MONDAY, '10:00', client=self.client_obj, now=BEFORE_MONDAY
        )
        appointment.status = AppointmentStatus.NO_SHOW
        appointment.save()

        self.client_obj.refresh_from_db()
        self.assertEqual(self.client_obj.total_visits, 0)


class ClientLookupTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon()

    def test_finds_by_normalized_phone(self):
        client, created = find_or_create_client(self.business, 'Мария', phone='+7 (999) 000-00-01')
        self.assertFalse(created)
        self.assertEqual(client, self.client_obj)

    def test_finds_by_email_case_insensitive(self):
        self.client_obj.email = 'maria@example.com'
        self.client_obj.save()
        client, created = find_or_create_client(self.business, 'Мария', email='Maria@Example.com')
        self.assertFalse(created)
        self.assertEqual(client, self.client_obj)

    def test_creates_new_client(self):
        client, created = find_or_create_client(self.business, '  Ирина   Орлова ', email='irina@example.com')
        self.assertTrue(created)
        self.assertEqual(client.name, 'Ирина Орлова')
        self.assertEqual(client.business, self.business)

    def test_clients_are_scoped_to_business(self):
        other_business = Business.objects.create(name='Другой салон')
        client, created = find_or_create_client(other_business, 'Мария', phone='+79990000001')
        self.assertTrue(created)
        self.assertEqual(Client.objects.filter(phone='+79990000001').count(), 2)


class AppointmentSummaryTests(TestCase):

    def setUp(self):
        self.business, self.staff, self.service, self.client_obj = make_salon(price='1000.00')

    def test_summary(self):
        done = reserve_appointment(self.staff, self.service, MONDAY, '09:00', now=BEFORE_MONDAY)
        done.status = AppointmentStatus.COMPLETED
        done.save()
        cancelled = reserve_appointment(self.staff, self.service, MONDAY, '11:00', now=BEFORE_MONDAY)
        cancelled.status = AppointmentStatus.CANCELLED
        cancelled.save()
        reserve_appointment(self.staff, self.service, MONDAY, '13:00', now=BEFORE_MONDAY)

        summary = appointment_summary(self.business, MONDAY, MONDAY)

        self.assertEqual(summary['total'], 3)
        self.assertEqual(summary['by_status'][AppointmentStatus.COMPLETED], 1)
        self.assertEqual(summary['by_status'][AppointmentStatus.CANCELLED], 1)
        self.assertEqual(summary['by_status'][AppointmentStatus.PENDING], 1)
        self.assertEqual(summary['revenue'], '1000.00')
        self.assertEqual(summary['service_popularity'], [{'service': 'Стрижка', 'count': 2}])
        self.assertEqual(summary['staff_load'][0]['total_duration_minutes'], 120)
        self.assertEqual(summary['staff_load'][0]['total_duration_display'], '2 ч')

    def test_revenue_has_two_decimal_places(self):
        summary = appointment_summary(self.business, MONDAY, MONDAY)
        self.assertEqual(summary['revenue'], '0.00')

        done = reserve_appointment(self.staff, self.service, MONDAY, '09:00', now=BEFORE_MONDAY)
        done.status = AppointmentStatus.COMPLETED
        done.save()
        self.assertEqual(appointment_summary(self.business, MONDAY, MONDAY)['revenue'], '1000.00')

    def test_format_duration(self):
        self.assertEqual(format_duration(45), '45 мин')
        self.assertEqual(format_duration(60), '1 ч')
        self.assertEqual(format_duration(150), '2 ч 30 мин')


class SeedSalonCommandTests(TestCase):

    def test_seed_is_repeatable(self):
        call_command('seed_salon', stdout=StringIO())
        call_command('seed_salon', stdout=StringIO())

        business = Business.objects.get(name='Демо-салон')
        self.assertEqual(business.staff.count(), 2)
        self.assertEqual(business.services.count(), 5)
        master = StaffMember.objects.get(user__username='master1')
        self.assertFalse(get_weekly_schedule(master)[7].is_working)
        self.assertEqual(get_weekly_schedule(master)[1].break_start, '13:00')

    def test_reset(self):
        call_command('seed_salon', stdout=StringIO())
        call_command('seed_salon', '--reset', stdout=StringIO())
        self.assertEqual(Business.objects.filter(name='Демо-салон').count(), 1)
