"""Barbershop booking slot allocation and waitlist fulfillment service."""

__version__ = "0.1.0"
