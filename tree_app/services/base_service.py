"""
Base service class providing common functionality for all services
"""
import uuid

from tree_app.services.exceptions import ValidationError
from tree_app.shared.logging_config import get_project_logger


class BaseService:
    """Base class for all services providing common functionality"""

    def __init__(self, db_session=None):
        self.logger = get_project_logger(self.__class__.__module__)
        self.db_session = db_session

    @staticmethod
    def parse_id(value, field_name: str = 'id') -> uuid.UUID:
        """Parse a UUID argument, raising ValidationError on garbage"""
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid {field_name}: {value!r}") from e
