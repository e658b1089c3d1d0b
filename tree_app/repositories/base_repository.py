"""
Shared plumbing for the graph repositories: session lookup, flush and rollback
"""

from abc import ABC
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from tree_app.database import db
from tree_app.shared.logging_config import get_project_logger


ModelType = TypeVar('ModelType')


class BaseRepository(ABC):
    """
    Base class for repositories over the person graph tables

    Writes go through safe_operation, which flushes so generated ids are
    available to the caller and rolls the session back on failure. Commits
    are left to the service layer.
    """

    def __init__(self, db_session=None):
        self._db_session = db_session
        self.logger = get_project_logger(self.__class__.__name__)

    @property
    def db_session(self):
        # Resolved lazily so repositories can be built outside an app context
        return self._db_session or db.session

    def safe_operation(self, operation: Callable[[], Any], operation_name: str = "write") -> Any:
        """
        Run a write and flush it

        Args:
            operation: Callable doing the session changes, its result is returned
            operation_name: Short description used in log lines

        Raises:
            SQLAlchemyError: After rolling back the session
        """
        try:
            result = operation()
            self.db_session.flush()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            self.logger.error(f"Graph write '{operation_name}' failed, rolled back: {e}")
            raise
        self.logger.debug(f"Graph write '{operation_name}' flushed")
        return result

    def safe_query(self, query_func: Callable[[], Any], operation_name: str = "query") -> Any:
        """Run a read; errors are logged and propagated"""
        try:
            return query_func()
        except SQLAlchemyError as e:
            self.logger.error(f"Graph query '{operation_name}' failed: {e}")
            raise


class ModelRepository(BaseRepository, Generic[ModelType]):
    """Create and update rows of one mapped class"""

    def __init__(self, model_class: type[ModelType], db_session=None):
        super().__init__(db_session)
        self.model_class = model_class

    def create(self, **kwargs) -> ModelType:
        def _create():
            instance = self.model_class(**kwargs)
            self.db_session.add(instance)
            return instance

        return self.safe_operation(_create, f"create {self.model_class.__tablename__}")

    def update(self, instance: ModelType, **kwargs) -> ModelType:
        """Set the given columns; unknown names are ignored"""
        def _update():
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            return instance

        return self.safe_operation(_update, f"update {self.model_class.__tablename__}")
