"""
URL configuration for the clinic admission service.

The `urlpatterns` list routes URLs to views.  This module includes
the Django admin, the queue API routes provided by the admission app
and the Prometheus metrics endpoint.  OpenAPI documentation is exposed
at ``/swagger/`` and ``/redoc/``.
"""
from django.contrib import admin
from django.urls import path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

# API metadata for Swagger/OpenAPI documentation
api_info = openapi.Info(
    title="Clinic Admission API",
    default_version='v1',
    description="Check-in, admission and eviction for the clinic waiting room.",
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    # Django admin site (staff overrides on the queue)
    path('admin/', admin.site.urls),
    # Include API routes from the admission app
    path('', include('admission.routers')),
    # Prometheus scrape endpoint
    path('', include('django_prometheus.urls')),
    # Swagger and ReDoc
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
