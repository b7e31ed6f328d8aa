from django.apps import AppConfig


class RealtimeConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.realtime"
    verbose_name = "Realtime availability"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from . import signals  # noqa: F401
