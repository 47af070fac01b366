# backend/barberbook/routes/v1/__init__.py
"""API v1 routers, mounted under /api/v1 in main.py."""
