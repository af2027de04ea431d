"""
Ticketing app for Stripe webhook ingestion.

Verified ticket purchase events are materialized into transaction
records and written atomically to the payments, checkouts and schedules
collections, with a bounded retry queue for transient failures.
"""
