from django.apps import AppConfig


class BloodbankConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bloodbank'
    verbose_name = 'Blood bank'

    def ready(self):
        from . import notifications, signals  # noqa: F401  register receivers
        from .services import build_services

        self.services = build_services()
