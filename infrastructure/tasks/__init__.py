"""Celery task infrastructure package.

Importing this module wires together the configured Celery app and its
beat schedule.
"""
from .config.celery import celery_app

__all__ = ["celery_app"]
