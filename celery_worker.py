"""
Celery worker entry point

Start workers with: celery -A celery_worker.celery worker --loglevel=info
"""
from tree_app import create_app
from tree_app.tasks.celery_app import celery as celery_instance


# Create Flask app - environment variables provided by Docker/deployment
app = create_app()

# Tasks look up the tree cache through the Flask app context
app.app_context().push()

celery = celery_instance
