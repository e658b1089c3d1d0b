"""
Request parsing and service construction shared by the API blueprints
"""
from collections.abc import Callable
from typing import Any

from celery.exceptions import OperationalError
from flask import current_app, request
from kombu.exceptions import ConnectionError
from kombu.exceptions import OperationalError as KombuOperationalError

from tree_app.repositories.graph_repository import GraphRepository
from tree_app.services.exceptions import ValidationError
from tree_app.services.graph_mutation_service import GraphMutationService
from tree_app.services.tree_view_service import TreeViewService
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)


class TaskSubmissionError(Exception):
    """Custom exception for task submission failures"""
    pass


def get_tree_view_service() -> TreeViewService:
    """Request-scoped read service sharing the process-wide tree cache"""
    config = current_app.config
    return TreeViewService(
        GraphRepository(),
        current_app.extensions['tree_cache'],
        default_max_depth=config['PATH_DEFAULT_MAX_DEPTH'],
        max_depth_cap=config['PATH_MAX_DEPTH_CAP'],
        max_generations=config['TREE_MAX_GENERATIONS'],
        depth_policy=config['TREE_DEPTH_POLICY'],
        root_persons_limit=config['ROOT_PERSONS_LIMIT'],
    )


def get_mutation_service() -> GraphMutationService:
    return GraphMutationService(GraphRepository(), current_app.extensions['tree_cache'])


def int_arg(name: str, default: int | None = None) -> int | None:
    """Integer query argument; ValidationError when present but malformed"""
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValidationError(f"Query parameter '{name}' must be an integer") from e


def bool_arg(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def json_body(required_fields: list[str] = ()) -> dict:
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        raise ValidationError('No data provided')
    missing = [field for field in required_fields if data.get(field) in (None, '', [])]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return data


def safe_task_submit(task_func: Callable, task_name: str, *args, **kwargs) -> Any:
    """Submit a Celery task, translating broker failures into TaskSubmissionError"""
    try:
        return task_func(*args, **kwargs)
    except (OperationalError, KombuOperationalError, ConnectionError) as e:
        logger.error(f"Broker connection failed for {task_name} task: {e}")
        raise TaskSubmissionError('Unable to connect to task queue - check that Redis and Celery worker are running') from e
    except OSError as e:
        logger.error(f"Network error submitting {task_name} task: {e}")
        raise TaskSubmissionError('Network error - unable to reach task queue') from e
