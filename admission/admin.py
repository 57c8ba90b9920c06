"""
Django admin registrations for the admission queue.

Staff can inspect the queue at ``/admin/`` and use two actions on the
patient list: admitting the selected patients (which may evict the
longest-admitted ones) and marking them done.  Both go through
:mod:`admission.services.queue`, so they respect the capacity limit and
notify connected screens exactly like the API.  Patients are never
added or deleted here: check-in allocates identities, and finished
patients stay on record as ``done``.
"""

from django.contrib import admin, messages

from .exceptions import PatientNotFound
from .models import IdentityCounter, Patient
from .services import queue as queue_service


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('token', 'name', 'age', 'country', 'status', 'created_at', 'admitted_at', 'finished_at')
    list_filter = ('status',)
    search_fields = ('token', 'name', 'country')
    ordering = ('id',)
    readonly_fields = ('id', 'token', 'status', 'created_at', 'admitted_at', 'finished_at')
    actions = ('admit_selected', 'finish_selected')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description='Admit selected patients')
    def admit_selected(self, request, queryset):
        admitted, evicted = 0, []
        for token in queryset.order_by('id').values_list('token', flat=True):
            try:
                result = queue_service.admit(token)
            except PatientNotFound:
                continue
            admitted += 1
            evicted.extend(result.evicted_tokens)
        self.message_user(request, f'Admitted {admitted} patient(s).', messages.SUCCESS)
        if evicted:
            self.message_user(request, f'Evicted: {", ".join(evicted)}', messages.WARNING)

    @admin.action(description='Mark selected patients done')
    def finish_selected(self, request, queryset):
        finished = 0
        for token in queryset.order_by('id').values_list('token', flat=True):
            try:
                queue_service.remove(token)
            except PatientNotFound:
                continue
            finished += 1
        self.message_user(request, f'Marked {finished} patient(s) done.', messages.SUCCESS)


@admin.register(IdentityCounter)
class IdentityCounterAdmin(admin.ModelAdmin):
    list_display = ('name', 'value', 'created_at')
    readonly_fields = ('name', 'value', 'created_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
