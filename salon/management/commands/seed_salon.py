"""
Команда для заполнения базы демонстрационным салоном.

Использование:
    python manage.py seed_salon
    python manage.py seed_salon --reset
    python manage.py seed_salon --password secret123
"""
from django.contrib.auth.models import User
from django.core.management.base import BaseCommand
from django.db import transaction

from salon.models import Appointment, Business, Client, Service, ServiceCategory, StaffMember, SystemSettings
from salon.schedule import DaySchedule
from salon.utils import replace_weekly_schedule

DEMO_BUSINESS = 'Демо-салон'

CATEGORIES = [
    ('Парикмахерские услуги', '#B91C1C', [
        ('Женская стрижка', 60, 1800),
        ('Мужская стрижка', 45, 1200),
        ('Окрашивание', 120, 4500),
    ]),
    ('Ногтевой сервис', '#1D4ED8', [
        ('Маникюр', 60, 1500),
        ('Педикюр', 90, 2200),
    ]),
]

STAFF = [
    ('admin', 'Анна Смирнова', StaffMember.ROLE_ADMIN, ['Женская стрижка', 'Мужская стрижка', 'Окрашивание']),
    ('master1', 'Ольга Иванова', StaffMember.ROLE_STAFF, ['Маникюр', 'Педикюр']),
]

CLIENTS = [
    ('Мария Петрова', '+79990000001', 'maria@example.com'),
    ('Елена Соколова', '+79990000002', ''),
]


class Command(BaseCommand):
    help = 'Создаёт демонстрационный салон: услуги, сотрудников с графиком и клиентов'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reset',
            action='store_true',
            help='Удалить демо-салон и его данные перед заполнением'
        )
        parser.add_argument(
            '--password',
            type=str,
            default='salon12345',
            help='Пароль для созданных пользователей. По умолчанию: salon12345'
        )

    def handle(self, *args, **options):
        if options['reset']:
            self.reset()

        with transaction.atomic():
            settings = SystemSettings.get_solo()
            self.stdout.write(f'Шаг слотов: {settings.slot_granularity_minutes} мин')

            business, created = Business.objects.get_or_create(
                name=DEMO_BUSINESS,
                defaults={'email': 'salon@example.com', 'phone': '+79990000000'}
            )
            if not created:
                self.stdout.write(self.style.WARNING('Демо-салон уже существует, дополняем данные'))

            services = self.create_services(business)
            self.create_staff(business, services, options['password'])
            self.create_clients(business)

        self.stdout.write(self.style.SUCCESS(f'Готово! Салон "{business.name}" (id={business.id})'))

    def reset(self):
        business = Business.objects.filter(name=DEMO_BUSINESS).first()
        if business is None:
            return
        usernames = [username for username, *_ in STAFF]
        with transaction.atomic():
            Appointment.objects.filter(business=business).delete()
            business.delete()
            User.objects.filter(username__in=usernames).delete()
        self.stdout.write(self.style.WARNING('Демо-салон удалён'))

    def create_services(self, business):
        services = {}
        for category_name, color, items in CATEGORIES:
            category, _ = ServiceCategory.objects.get_or_create(
                business=business,
                name=category_name,
                defaults={'color': color}
            )
            for name, duration, price in items:
                service, created = Service.objects.get_or_create(
                    business=business,
                    name=name,
                    defaults={'category': category, 'duration_minutes': duration, 'price': price}
                )
                services[name] = service
                if created:
                    self.stdout.write(f'  ✓ Создана услуга: {name}')
        return services

    def create_staff(self, business, services, password):
        for username, full_name, role, service_names in STAFF:
            user, user_created = User.objects.get_or_create(
                username=username,
                defaults={'email': f'{username}@example.com'}
            )
            if user_created:
                user.set_password(password)
                user.save()
            if role == StaffMember.ROLE_ADMIN and business.owner_id is None:
                business.owner = user
                business.save(update_fields=['owner'])

            staff, created = StaffMember.objects.get_or_create(
                user=user,
                defaults={'business': business, 'full_name': full_name, 'role': role}
            )
            staff.services.set([services[name] for name in service_names])

            if created:
                # Пн–Пт с перерывом на обед, суббота короткий день
                days = [
                    DaySchedule(day, True, '09:00', '18:00', '13:00', '14:00') for day in range(1, 6)
                ]
                days.append(DaySchedule(6, True, '10:00', '15:00'))
                days.append(DaySchedule(7, False))
                replace_weekly_schedule(staff, days)
                self.stdout.write(f'  ✓ Создан сотрудник: {full_name} ({username})')

    def create_clients(self, business):
        for name, phone, email in CLIENTS:
            _, created = Client.objects.get_or_create(
                business=business,
                phone=phone,
                defaults={'name': name, 'email': email}
            )
            if created:
                self.stdout.write(f'  ✓ Создан клиент: {name}')
