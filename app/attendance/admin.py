from django.contrib import admin

from attendance.models import AttendanceEvent, AttendancePhoto


class AttendancePhotoInline(admin.StackedInline):
    model = AttendancePhoto
    extra = 0
    can_delete = False
    readonly_fields = ("drive_file_id", "drive_url", "mime_type", "file_size", "created_at")


@admin.register(AttendanceEvent)
class AttendanceEventAdmin(admin.ModelAdmin):
    list_display = ("user", "day", "timestamp", "status")
    list_filter = ("status", "day")
    search_fields = ("user__username", "user__full_name")
    readonly_fields = ("user", "timestamp", "day", "status", "created_at")
    inlines = [AttendancePhotoInline]
