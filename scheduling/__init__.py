"""Scheduling application.

Chamber schedules, doctor and test serial policies, per-date overrides and
the booking ledger, together with the API that exposes availability and
allocates bookings.
"""
