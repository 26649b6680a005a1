from django.contrib import admin

from event_checkin.audit import models


@admin.register(models.AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "action",
        "event",
        "actor",
        "target_type",
        "target_id",
    ]
    list_select_related = ["event", "actor"]
    search_fields = ["action", "message", "ip_address"]
    list_filter = ["action", "event"]
    readonly_fields = [f.name for f in models.AuditLog._meta.fields]
