"""
URL configuration for the ticketing app.

Routes:
    webhooks/stripe/ - Stripe webhook endpoint (POST)
"""

from django.urls import path

from ticketing.webhooks.views import stripe_webhook

app_name = "ticketing"

urlpatterns = [
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
