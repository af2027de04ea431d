"""
URL configuration for the Django application.

URL Structure:
    /admin/                        - Django admin interface (documents, retry jobs)
    /health/                       - Health check endpoint (for load balancers, Docker)
    /api/v1/ticketing/             - Ticketing endpoints
        webhooks/stripe/           - Stripe webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Ticketing
    path("ticketing/", include("ticketing.urls")),
]

urlpatterns = [
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Ticketing Admin"
admin.site.site_title = "Ticketing Admin Portal"
admin.site.index_title = "Transactions and retry queue"
