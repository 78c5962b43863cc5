"""
Django admin registrations for the scheduling models.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Booking,
    Chamber,
    DateOverride,
    DiagnosticCenter,
    DiagnosticTest,
    Doctor,
    Hospital,
    Notification,
    Schedule,
    ScheduleWindow,
    SerialPolicy,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'hospital', 'diagnostic_center', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'phone')


@admin.register(Hospital, DiagnosticCenter)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('name',)


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialization', 'status', 'hospital', 'diagnostic_center')
    list_filter = ('status',)
    search_fields = ('name', 'specialization')


@admin.register(Chamber)
class ChamberAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'doctor', 'hospital', 'consultation_fee', 'follow_up_fee', 'is_active')


@admin.register(DiagnosticTest)
class DiagnosticTestAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'hospital', 'diagnostic_center', 'price', 'is_active')
    search_fields = ('name', 'code')


class ScheduleWindowInline(admin.TabularInline):
    model = ScheduleWindow
    extra = 0


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'chamber', 'day_of_week', 'is_active', 'valid_from', 'valid_until')
    list_filter = ('day_of_week', 'is_active')
    inlines = [ScheduleWindowInline]


class DateOverrideInline(admin.TabularInline):
    model = DateOverride
    extra = 0


@admin.register(SerialPolicy)
class SerialPolicyAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'test', 'hospital', 'diagnostic_center',
                    'total_serials_per_day', 'start_time', 'end_time', 'price', 'is_active')
    list_filter = ('is_active',)
    inlines = [DateOverrideInline]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('reference', 'kind', 'subject_ref', 'facility_ref', 'date', 'start_time',
                    'serial_number', 'status', 'patient', 'created_at')
    list_filter = ('kind', 'status', 'date')
    search_fields = ('reference', 'patient__username')
    # Slot identity is fixed once allocated.
    readonly_fields = ('reference', 'subject_ref', 'facility_ref', 'date', 'slot_key', 'occupies')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'kind', 'title', 'is_read', 'created_at')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action',)
