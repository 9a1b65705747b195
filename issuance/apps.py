from django.apps import AppConfig


class IssuanceConfig(AppConfig):
    """
    Issuance ledger: who received how much of which item, and when.
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'issuance'
    verbose_name = 'Issuance'
