from django.conf import settings
from django.db import models


class Participant(models.Model):
    """A confirmed registration for an event.

    Created by a quick-add at the door or by converting a pre-registered
    candidate. Conversion only ever creates rows here.
    """

    class ParticipantType(models.TextChoices):
        LEAD = "lead", "Lead"
        PARTICIPANT = "participant", "Participant"
        ATTENDEE = "attendee", "Attendee"

    event = models.ForeignKey(
        "events.Event",
        on_delete=models.CASCADE,
        related_name="participants",
    )
    full_name = models.CharField(max_length=255)
    # Plain CharField: converted candidates may carry a placeholder address.
    email = models.CharField(max_length=320)
    area = models.CharField(max_length=255)
    national_id = models.CharField(max_length=64, blank=True, null=True)
    participant_type = models.CharField(
        max_length=20,
        choices=ParticipantType.choices,
        default=ParticipantType.PARTICIPANT,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registered_participants",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["event", "area"], name="participant_event_area_idx")
        ]

    def __str__(self):  # pragma: no cover - trivial
        return f"{self.full_name} <{self.email}>"
