"""
Celery application for tree cache maintenance tasks
"""
import os

from celery import Celery


DEFAULT_REDIS_URL = 'redis://localhost:6379/0'

# Purge results are only read by the CLI and the purge endpoint's callers
RESULT_EXPIRES_SECONDS = 60 * 60


def make_celery(broker_url=None, result_backend=None):
    """Create the Celery instance; create_app() overrides the URLs from Flask config"""
    celery = Celery('family_tree_graph', include=['tree_app.tasks.cache_tasks'])
    celery.conf.update(
        broker_url=broker_url or os.environ.get('CELERY_BROKER_URL', DEFAULT_REDIS_URL),
        result_backend=result_backend or os.environ.get('CELERY_RESULT_BACKEND', DEFAULT_REDIS_URL),
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        result_expires=RESULT_EXPIRES_SECONDS,
        timezone='UTC',
        enable_utc=True,
    )
    return celery


celery_app = make_celery()
celery = celery_app
