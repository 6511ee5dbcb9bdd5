"""Passport Tracker: follows passport applications and reports status changes."""

__version__ = "0.1.0"
