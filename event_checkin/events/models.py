from django.conf import settings
from django.db import models
from django.http import Http404


class EventQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_deleted=False)


class Event(models.Model):
    """An event that scopes pre-registrations and check-ins.

    Event CRUD belongs to the organizer tooling; this code only reads events
    and never hard-deletes them.
    """

    name = models.CharField(max_length=255)
    event_date = models.DateField(blank=True, null=True)
    description = models.TextField(blank=True)
    is_deleted = models.BooleanField(default=False, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_events",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ["-event_date", "-created_at"]

    def __str__(self):  # pragma: no cover - trivial
        return self.name

    def soft_delete(self) -> None:
        if not self.is_deleted:
            self.is_deleted = True
            self.save(update_fields=["is_deleted", "updated_at"])


def get_active_event_or_404(event_id) -> Event:
    try:
        return Event.objects.active().get(pk=event_id)
    except (Event.DoesNotExist, ValueError, TypeError):
        msg = "Event not found."
        raise Http404(msg) from None
