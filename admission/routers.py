"""
URL mappings for the admission queue API.

Paths match the ones the kiosk and staff screens already call.  Note
that trailing slashes are deliberately omitted.
"""
from django.urls import path

from .views import health
from .views.queue import admit, admit_next, checkin, list_allowed, list_patients, remove

urlpatterns = [
    path('healthz', health.healthz, name='healthz'),
    path('api/checkin', checkin, name='checkin'),
    path('api/patients', list_patients, name='patients'),
    path('api/allowed', list_allowed, name='allowed'),
    path('api/admit/<str:token>', admit, name='admit'),
    path('api/remove/<str:token>', remove, name='remove'),
    path('api/next', admit_next, name='admit_next'),
]
