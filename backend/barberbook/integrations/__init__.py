"""Clients for external systems the booking service talks to."""
