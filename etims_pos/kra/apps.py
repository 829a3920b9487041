from django.apps import AppConfig


class KraConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'etims_pos.kra'
    verbose_name = 'KRA eTIMS'

    def ready(self):
        """Import signals when app is ready"""
        import etims_pos.kra.credentials  # noqa: F401  # Device header cache invalidation
