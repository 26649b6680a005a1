from django.db import models
from django.db.models import Q


class PreRegisteredParticipant(models.Model):
    """A row of an uploaded attendee sheet, waiting to be checked in.

    Candidates are only ever created by replacing the whole set of an event.
    ``converted`` flips once, together with ``converted_registration``, and
    never goes back.
    """

    class IdentifierType(models.TextChoices):
        DNI = "dni", "National ID"
        EMAIL = "email", "Email"
        NAME = "name", "Name"

    event = models.ForeignKey(
        "events.Event",
        on_delete=models.CASCADE,
        related_name="preregistrations",
    )
    identifier_type = models.CharField(max_length=10, choices=IdentifierType.choices)
    identifier_value = models.CharField(max_length=255)
    full_name = models.CharField(max_length=255, blank=True, null=True)
    email = models.CharField(max_length=320, blank=True, null=True)
    national_id = models.CharField(max_length=64, blank=True, null=True)
    area = models.CharField(max_length=255, blank=True, null=True)
    # Ordered [column, value] pairs; a JSON object would lose column order.
    raw_data = models.JSONField(default=list, blank=True)
    converted = models.BooleanField(default=False)
    converted_registration = models.OneToOneField(
        "participants.Participant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="preregistration",
    )
    converted_at = models.DateTimeField(blank=True, null=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["converted", "full_name", "id"]
        indexes = [
            models.Index(
                fields=["event", "converted"], name="prereg_event_converted_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(identifier_value=""),
                name="prereg_identifier_value_not_blank",
            ),
            models.CheckConstraint(
                condition=(
                    Q(converted=True, converted_registration__isnull=False)
                    | Q(converted=False, converted_registration__isnull=True)
                ),
                name="prereg_converted_has_registration",
            ),
        ]

    def __str__(self):  # pragma: no cover - trivial
        return f"{self.identifier_type}:{self.identifier_value}"

    @property
    def raw_row(self) -> dict:
        """Original column -> value map, in sheet column order."""
        return {column: value for column, value in self.raw_data or []}

    @staticmethod
    def pack_row(row: dict) -> list:
        return [[str(column), value] for column, value in row.items()]
