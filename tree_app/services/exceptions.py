"""
Custom exceptions for service layer
"""

import functools

import sqlalchemy.exc


class ServiceError(Exception):
    """Base exception for service layer errors"""
    pass

class ValidationError(ServiceError):
    """Raised when input validation fails"""
    pass

class NotFoundError(ServiceError):
    """Raised when a person does not exist or belongs to another tenant"""
    pass

class ConflictError(ServiceError):
    """Raised when an operation conflicts with current state"""
    pass

class DepthExceededError(ServiceError):
    """Raised when a requested depth is above the configured hard cap"""

    def __init__(self, requested: int, maximum: int, parameter: str = 'depth'):
        super().__init__(f"Requested {parameter} {requested} exceeds the maximum of {maximum}")
        self.requested = requested
        self.maximum = maximum
        self.parameter = parameter

class TenantMismatchError(ServiceError):
    """Raised when data or a cache entry crosses a tenant boundary"""
    pass

class UnavailableError(ServiceError):
    """Raised when the backing store cannot serve the request"""
    pass

class CacheUnavailableError(ServiceError):
    """Raised by cache backends; never surfaced to callers"""
    pass

class OperationCancelledError(ServiceError):
    """Raised when a request was cancelled between traversal layers"""
    pass


def handle_service_exceptions(logger=None):
    """Decorator to handle common service exceptions and convert them to service-specific exceptions"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ServiceError:
                # Re-raise our own service errors
                raise
            except sqlalchemy.exc.IntegrityError as e:
                if logger:
                    logger.error(f"Database integrity error in {func.__name__}: {e}")
                raise ConflictError(f"Data integrity violation: {e}") from e
            except sqlalchemy.exc.OperationalError as e:
                if logger:
                    logger.error(f"Database operational error in {func.__name__}: {e}")
                raise UnavailableError(f"Database connection error: {e}") from e
            except sqlalchemy.exc.SQLAlchemyError as e:
                if logger:
                    logger.error(f"Database error in {func.__name__}: {e}")
                raise UnavailableError(f"Database error: {e}") from e
            except ValueError as e:
                if logger:
                    logger.error(f"Validation error in {func.__name__}: {e}")
                raise ValidationError(f"Invalid input: {e}") from e
            except KeyError as e:
                if logger:
                    logger.error(f"Missing required data in {func.__name__}: {e}")
                raise ValidationError(f"Missing required field: {e}") from e
            except Exception as e:
                if logger:
                    logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
                raise ServiceError(f"Unexpected service error: {e}") from e
        return wrapper
    return decorator
