# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# push delivery and scheduled reminders.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (push dispatch, reminders)
# - config.py: Worker-specific settings and beat schedule
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker -Q default,notifications --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import dispatch_push_notification
#   dispatch_push_notification.delay(user_id, {"title": ..., "message": ...})
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
