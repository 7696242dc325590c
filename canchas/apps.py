from django.apps import AppConfig


class CanchasConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'canchas'
    verbose_name = 'Canchas y reservas'
