from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class PreRegistrationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "event_checkin.preregistration"
    verbose_name = _("Pre-registration")
