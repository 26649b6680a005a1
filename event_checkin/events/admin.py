from django.contrib import admin

from event_checkin.events import models


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "event_date", "is_deleted", "created_at"]
    search_fields = ["name", "description"]
    list_filter = ["is_deleted", "event_date"]

    def has_delete_permission(self, request, obj=None):
        # Events are soft-deleted through ``is_deleted`` only.
        return False
