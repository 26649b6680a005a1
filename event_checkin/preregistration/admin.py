from django.contrib import admin

from event_checkin.preregistration import models


@admin.register(models.PreRegisteredParticipant)
class PreRegisteredParticipantAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "event",
        "identifier_type",
        "identifier_value",
        "full_name",
        "converted",
        "uploaded_at",
    ]
    search_fields = ["identifier_value", "full_name", "email", "national_id"]
    list_filter = ["converted", "identifier_type", "event"]
    raw_id_fields = ["event", "converted_registration"]
    readonly_fields = [
        "raw_data",
        "converted",
        "converted_registration",
        "converted_at",
        "uploaded_at",
    ]
