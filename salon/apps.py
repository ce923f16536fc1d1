from django.apps import AppConfig


class SalonConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'salon'
    verbose_name = 'Салон: запись клиентов'

    def ready(self):
        from . import signals  # noqa: F401
