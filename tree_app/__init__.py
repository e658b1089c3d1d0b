"""
Family tree graph service: relationship paths and bounded tree views
"""

from flask import Flask

from tree_app.config import Config


# Flask config keys copied from the config object
CONFIG_KEYS = [
    'secret_key',
    'debug',
    'sqlalchemy_database_uri',
    'sqlalchemy_track_modifications',
    'celery_broker_url',
    'celery_result_backend',
    'tree_cache_url',
    'tree_cache_pedigree_ttl',
    'tree_cache_default_ttl',
    'tree_cache_failure_threshold',
    'tree_cache_break_seconds',
    'tree_cache_max_payload_bytes',
    'tree_cache_socket_timeout',
    'tree_cache_wide_invalidation',
    'path_default_max_depth',
    'path_max_depth_cap',
    'tree_max_generations',
    'tree_depth_policy',
    'root_persons_limit',
]


def build_tree_cache(app_config):
    """Build the process-wide tree cache from Flask config"""
    from tree_app.services.cache_backend import ResilientCache, build_cache_backend
    from tree_app.services.tree_cache import TreeCache
    from tree_app.shared.circuit_breaker import CircuitBreaker

    backend = build_cache_backend(app_config['TREE_CACHE_URL'], app_config['TREE_CACHE_SOCKET_TIMEOUT'])
    breaker = CircuitBreaker(
        'tree-cache',
        threshold=app_config['TREE_CACHE_FAILURE_THRESHOLD'],
        recovery_timeout_sec=app_config['TREE_CACHE_BREAK_SECONDS'],
    )
    resilient = ResilientCache(backend, breaker, max_payload_bytes=app_config['TREE_CACHE_MAX_PAYLOAD_BYTES'])
    return TreeCache(
        resilient,
        pedigree_ttl=app_config['TREE_CACHE_PEDIGREE_TTL'],
        default_ttl=app_config['TREE_CACHE_DEFAULT_TTL'],
        max_depth_cap=app_config['PATH_MAX_DEPTH_CAP'],
        wide_invalidation=app_config['TREE_CACHE_WIDE_INVALIDATION'],
        max_generations=app_config['TREE_MAX_GENERATIONS'],
    )


def create_app(config=None):
    """Application factory"""
    app = Flask(__name__)

    if config is None:
        config = Config()

    for name in CONFIG_KEYS:
        app.config[name.upper()] = getattr(config, name)

    # Configure Celery app context
    from tree_app.tasks.celery_app import celery_app
    celery_app.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
    )

    # One cache per process, handed to services through app.extensions
    app.extensions['tree_cache'] = build_tree_cache(app.config)

    from tree_app.blueprints.api_graph import api_graph
    from tree_app.blueprints.api_tree import api_tree
    app.register_blueprint(api_tree)
    app.register_blueprint(api_graph)

    from tree_app.database import init_app as init_database
    init_database(app)

    from tree_app.error_handlers import register_error_handlers
    register_error_handlers(app)

    from tree_app.commands import register_commands
    register_commands(app)

    return app


__all__ = ['Config', 'create_app']
