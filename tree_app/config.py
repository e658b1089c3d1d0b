"""
Environment-driven configuration for the tree service
"""

import os


class Config:
    """Configuration class for Flask app with required environment variables"""

    def __init__(self):
        # Flask configuration
        self.secret_key = self._require_env('SECRET_KEY')
        self.debug = self._env_bool('FLASK_DEBUG', False)

        # Database configuration
        self.sqlalchemy_database_uri = self._require_env('DATABASE_URL')
        self.sqlalchemy_track_modifications = False

        # Celery configuration
        self.celery_broker_url = self._require_env('CELERY_BROKER_URL')
        self.celery_result_backend = self._require_env('CELERY_RESULT_BACKEND')

        # Tree cache; empty URL selects the in-process backend
        self.tree_cache_url = os.environ.get('TREE_CACHE_URL', '')
        self.tree_cache_pedigree_ttl = self._env_int('TREE_CACHE_PEDIGREE_TTL', 24 * 60 * 60)
        self.tree_cache_default_ttl = self._env_int('TREE_CACHE_DEFAULT_TTL', 6 * 60 * 60)
        self.tree_cache_failure_threshold = self._env_int('TREE_CACHE_FAILURE_THRESHOLD', 5)
        self.tree_cache_break_seconds = self._env_float('TREE_CACHE_BREAK_SECONDS', 30.0)
        self.tree_cache_max_payload_bytes = self._env_int('TREE_CACHE_MAX_PAYLOAD_BYTES', 5 * 1024 * 1024)
        self.tree_cache_socket_timeout = self._env_float('TREE_CACHE_SOCKET_TIMEOUT', 0.5)
        self.tree_cache_wide_invalidation = self._env_bool('TREE_CACHE_WIDE_INVALIDATION', False)

        # Traversal bounds
        self.path_default_max_depth = self._env_int('PATH_DEFAULT_MAX_DEPTH', 15)
        self.path_max_depth_cap = self._env_int('PATH_MAX_DEPTH_CAP', 20)
        self.tree_max_generations = self._env_int('TREE_MAX_GENERATIONS', 10)
        self.tree_depth_policy = os.environ.get('TREE_DEPTH_POLICY', 'reject')
        self.root_persons_limit = self._env_int('ROOT_PERSONS_LIMIT', 50)

        if self.tree_depth_policy not in ('reject', 'clamp'):
            raise RuntimeError(f"TREE_DEPTH_POLICY must be 'reject' or 'clamp', got {self.tree_depth_policy!r}")
        if self.path_default_max_depth > self.path_max_depth_cap:
            raise RuntimeError("PATH_DEFAULT_MAX_DEPTH cannot exceed PATH_MAX_DEPTH_CAP")

    def _require_env(self, var_name: str) -> str:
        """Require environment variable or raise error"""
        value = os.environ.get(var_name)
        if not value:
            raise RuntimeError(f"Required environment variable {var_name} is not set")
        return value

    def _env_int(self, var_name: str, default: int) -> int:
        value = os.environ.get(var_name)
        if not value:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise RuntimeError(f"Environment variable {var_name} must be an integer, got {value!r}") from e

    def _env_float(self, var_name: str, default: float) -> float:
        value = os.environ.get(var_name)
        if not value:
            return default
        try:
            return float(value)
        except ValueError as e:
            raise RuntimeError(f"Environment variable {var_name} must be a number, got {value!r}") from e

    def _env_bool(self, var_name: str, default: bool) -> bool:
        value = os.environ.get(var_name)
        if not value:
            return default
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
