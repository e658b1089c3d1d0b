"""
Tests for tree cache Celery tasks
"""
import uuid
from unittest.mock import Mock, patch

import pytest

from tree_app.services import cache_keys
from tree_app.tasks.cache_tasks import purge_org_tree_cache


class TestPurgeOrgTreeCache:
    """Test the tenant purge task"""

    def test_purge_removes_only_that_org(self, app, fresh_tree_cache):
        """Entries of the org are removed, other tenants keep theirs"""
        org_id, other_org = uuid.uuid4(), uuid.uuid4()
        fresh_tree_cache.set(cache_keys.family(org_id, uuid.uuid4()), {}, org_id)
        fresh_tree_cache.set(cache_keys.pedigree(org_id, uuid.uuid4(), 3, False), {}, org_id)
        kept = cache_keys.family(other_org, uuid.uuid4())
        fresh_tree_cache.set(kept, {}, other_org)

        with app.app_context():
            result = purge_org_tree_cache.apply(args=(str(org_id),))

        assert result.successful()
        assert result.result == {'success': True, 'org_id': str(org_id), 'removed': 2}
        assert fresh_tree_cache.cache.backend.keys() == [kept]

    @patch('tree_app.tasks.cache_tasks.logger')
    @patch('tree_app.tasks.cache_tasks._tree_cache')
    def test_purge_logs_and_uses_cache(self, mock_tree_cache, mock_logger):
        """Test the task works outside an app context with a supplied cache"""
        cache = Mock()
        cache.purge_org.return_value = 7
        mock_tree_cache.return_value = cache
        org_id = uuid.uuid4()

        result = purge_org_tree_cache.apply(args=(org_id.hex,))

        assert result.result['removed'] == 7
        assert result.result['org_id'] == str(org_id)
        cache.purge_org.assert_called_once_with(org_id)
        mock_logger.info.assert_called_once()

    def test_invalid_org_id_fails_task(self, app):
        """Test a malformed org id fails the task"""
        with app.app_context():
            result = purge_org_tree_cache.apply(args=('not-an-id',))

        assert result.failed()

    def test_task_registered_name(self):
        assert purge_org_tree_cache.name == 'tree_app.tasks.cache_tasks.purge_org_tree_cache'


class TestCeleryApp:
    """Celery application configuration"""

    def test_json_serialization(self):
        from tree_app.tasks.celery_app import celery_app

        assert celery_app.conf.task_serializer == 'json'
        assert 'tree_app.tasks.cache_tasks' in celery_app.conf.include

    @pytest.mark.usefixtures('app')
    def test_broker_from_app_config(self):
        from tree_app.tasks.celery_app import celery_app

        assert celery_app.conf.broker_url == 'memory://'
