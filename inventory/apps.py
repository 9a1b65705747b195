from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """
    Uniform stock: categories, items and the quantity-adjustment primitive.
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'inventory'
    verbose_name = 'Inventory'
