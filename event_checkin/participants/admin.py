from django.contrib import admin

from event_checkin.participants import models


@admin.register(models.Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "full_name",
        "email",
        "area",
        "participant_type",
        "event",
        "created_at",
    ]
    search_fields = ["full_name", "email", "national_id", "area"]
    list_filter = ["participant_type", "event"]
    raw_id_fields = ["event", "created_by"]
