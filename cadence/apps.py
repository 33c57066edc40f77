from django.apps import AppConfig


class CadenceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cadence"
    verbose_name = "Cadence matching"
