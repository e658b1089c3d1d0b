"""
Celery tasks for tree cache maintenance
"""
from flask import current_app, has_app_context

from tree_app.services.base_service import BaseService
from tree_app.shared.logging_config import get_project_logger
from tree_app.tasks.celery_app import celery


logger = get_project_logger(__name__)


def _tree_cache():
    if has_app_context():
        return current_app.extensions['tree_cache']
    # Worker process: build the cache from the same environment as the app
    from tree_app import create_app
    return create_app().extensions['tree_cache']


@celery.task(bind=True, name='tree_app.tasks.cache_tasks.purge_org_tree_cache')
def purge_org_tree_cache(self, org_id: str):
    """Remove every cached view and path of one tenant.

    Used after bulk imports and merges, where per-person invalidation would
    touch too many keys.
    """
    org_id = BaseService.parse_id(org_id, 'org_id')
    logger.info(f"Task {self.request.id}: purging tree cache of org {org_id}")
    removed = _tree_cache().purge_org(org_id)
    return {'success': True, 'org_id': str(org_id), 'removed': removed}
