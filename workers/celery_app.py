# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# One worker process serves both queues:
#   default        - anything without an explicit route
#   notifications  - push dispatch and reminder batches
#
# Usage:
#   # Worker
#   celery -A workers.celery_app worker -Q default,notifications --loglevel=info
#
#   # Hourly reminder scheduler (run exactly one beat process)
#   celery -A workers.celery_app beat --loglevel=info
# =============================================================================

import logging
import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Settings read the environment at import time
load_dotenv()

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry, worker_ready

from app.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def broker_host(url: str) -> str:
    """Broker URL without credentials, for logs."""
    return url.split("@")[-1] if "@" in url else url


def create_celery_app(name: str = "motorhub_worker") -> Celery:
    """
    Build the Celery app from workers.config.CeleryConfig.

    Broker and result backend both come from REDIS_URL, the same Redis
    the API uses for realtime pub/sub.
    """
    app = Celery(name, include=["workers.tasks"])
    app.config_from_object("workers.config:CeleryConfig")

    logger.info(f"Celery app '{name}' using broker {broker_host(settings.REDIS_URL)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Celery Signals (Lifecycle Hooks)
# =============================================================================

@worker_ready.connect
def worker_ready_handler(sender=None, **extra):
    """Warn early when the worker can't actually deliver pushes."""
    if not settings.push_configured:
        logger.warning("FCM credentials missing; queued pushes will be skipped")
    logger.info("MotorHub worker ready")


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    logger.info(f"Task started: {task.name} [{task_id}]")


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, retval=None, state=None, **extra):
    logger.info(f"Task completed: {task.name} [{task_id}] - State: {state}")


@task_retry.connect
def task_retry_handler(sender=None, request=None, reason=None, **extra):
    logger.warning(f"Task retry: {sender.name} [{request.id}] - Reason: {reason}")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, traceback=None, **extra):
    logger.error(f"Task failed: {sender.name} [{task_id}] - Error: {exception}")


if __name__ == "__main__":
    celery_app.start()
