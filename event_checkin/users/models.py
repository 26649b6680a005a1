from django.contrib.auth.models import AbstractUser
from django.db.models import CharField
from django.db.models import EmailField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for event_checkin.

    Organizers are staff (or members of the ``Admin`` group); assistants are
    plain authenticated users who can search and check people in.
    """

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Full Name"), blank=True, max_length=255)
    email = EmailField(_("email address"), unique=True)

    def save(self, *args, **kwargs):
        # Automatically build the full name
        if not self.name:
            self.name = f"{self.first_name} {self.last_name}".strip()
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.name or self.username
