"""Celery background tasks."""
