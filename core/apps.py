from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Shared access control and error taxonomy for the ledger apps."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Core'
