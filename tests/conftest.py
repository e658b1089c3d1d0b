"""
Pytest configuration and fixtures for the family tree graph service
"""

import os
import shutil
import sys
import tempfile
import uuid
from pathlib import Path

import pytest

from tree_app import build_tree_cache, create_app
from tree_app.database import db as _db
from tree_app.services.cache_backend import InMemoryCacheBackend, ResilientCache
from tree_app.services.tree_cache import TreeCache


# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tests.fakes import InMemoryGraphStore  # noqa: E402


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


class BaseTestConfig:
    """Test configuration; PostgreSQL when TEST_DATABASE_URL is set, in-memory SQLite otherwise"""
    def __init__(self):
        # App configuration
        self.secret_key = 'test-secret-key'
        self.debug = False

        # Database configuration
        self.sqlalchemy_database_uri = os.getenv('TEST_DATABASE_URL') or 'sqlite://'
        self.sqlalchemy_track_modifications = False

        # Celery configuration; tests never reach the broker
        self.celery_broker_url = 'memory://'
        self.celery_result_backend = 'cache+memory://'

        # Tree cache: in-process backend
        self.tree_cache_url = ''
        self.tree_cache_pedigree_ttl = 24 * 60 * 60
        self.tree_cache_default_ttl = 6 * 60 * 60
        self.tree_cache_failure_threshold = 5
        self.tree_cache_break_seconds = 30.0
        self.tree_cache_max_payload_bytes = 5 * 1024 * 1024
        self.tree_cache_socket_timeout = 0.5
        self.tree_cache_wide_invalidation = False

        # Traversal bounds
        self.path_default_max_depth = 15
        self.path_max_depth_cap = 20
        self.tree_max_generations = 10
        self.tree_depth_policy = 'reject'
        self.root_persons_limit = 50


@pytest.fixture(scope="session")
def app():
    """Create Flask app for testing - session scoped"""
    app = create_app(BaseTestConfig())
    app.config['TESTING'] = True
    return app


@pytest.fixture
def test_config():
    return BaseTestConfig()


@pytest.fixture(autouse=True)
def fresh_tree_cache(app):
    """Every test starts with an empty process cache"""
    app.extensions['tree_cache'] = build_tree_cache(app.config)
    yield app.extensions['tree_cache']


@pytest.fixture
def db(app):
    """Create all tables for one test and drop them afterwards"""
    with app.app_context():
        _db.create_all()
        try:
            yield _db
        finally:
            _db.session.remove()
            _db.drop_all()


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def org_id():
    return uuid.uuid4()


@pytest.fixture
def graph():
    """Empty in-memory person graph"""
    return InMemoryGraphStore()


@pytest.fixture
def memory_backend():
    return InMemoryCacheBackend()


@pytest.fixture
def tree_cache(memory_backend):
    """TreeCache over an in-memory backend, independent of the app"""
    return TreeCache(ResilientCache(memory_backend))


@pytest.fixture
def family(graph, org_id):
    """
    Grandpa with two sons, Dad and Uncle. Dad and Mom are married and are
    the parents of Me.
    """
    people = {
        'grandpa': graph.add_person('Grandpa', org_id, sex='Male'),
        'dad': graph.add_person('Dad', org_id, sex='Male'),
        'uncle': graph.add_person('Uncle', org_id, sex='Male'),
        'mom': graph.add_person('Mom', org_id, sex='Female'),
        'me': graph.add_person('Me', org_id, sex='Female'),
    }
    graph.add_parent(people['grandpa'], people['dad'])
    graph.add_parent(people['grandpa'], people['uncle'])
    graph.add_parent(people['dad'], people['me'])
    graph.add_parent(people['mom'], people['me'])
    people['dad_mom_union'] = graph.add_union(org_id, people['dad'], people['mom'])
    graph.reset_calls()
    return people
