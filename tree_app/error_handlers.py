"""
Shared error handlers mapping service exceptions to JSON responses
"""

from flask import current_app, jsonify, request

from tree_app.services.exceptions import (
    ConflictError,
    DepthExceededError,
    NotFoundError,
    OperationCancelledError,
    ServiceError,
    TenantMismatchError,
    UnavailableError,
    ValidationError,
)
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

STATUS_CODES = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (DepthExceededError, 422),
    (OperationCancelledError, 499),
    (UnavailableError, 503),
]


def status_for(error: ServiceError) -> int:
    for error_class, status in STATUS_CODES:
        if isinstance(error, error_class):
            return status
    return 500


def register_error_handlers(app_or_blueprint):
    """Register error handlers for Flask app or blueprint"""

    @app_or_blueprint.errorhandler(TenantMismatchError)
    def tenant_mismatch(error):
        """Cross-tenant guard failure: an assertion outside production, a hard deny in it"""
        logger.critical(f"Tenant boundary violation on {request.method} {request.path}: {error}")
        if current_app.debug or current_app.testing:
            raise error
        return jsonify({'success': False, 'error': 'Access denied'}), 403

    @app_or_blueprint.errorhandler(ServiceError)
    def service_error(error):
        status = status_for(error)
        if status >= 500:
            logger.error(f"Service error on {request.method} {request.path}: {error}")
        else:
            logger.warning(f"{error.__class__.__name__} on {request.method} {request.path}: {error}")

        body = {'success': False, 'error': str(error), 'error_type': error.__class__.__name__}
        if isinstance(error, DepthExceededError):
            body['details'] = {'parameter': error.parameter, 'requested': error.requested,
                               'maximum': error.maximum}
        return jsonify(body), status

    @app_or_blueprint.errorhandler(404)
    def not_found_error(error):
        logger.warning(f"404 error: {request.url}")
        return jsonify({'success': False, 'error': 'Resource not found'}), 404

    @app_or_blueprint.errorhandler(405)
    def method_not_allowed_error(error):
        logger.warning(f"405 error: {request.method} {request.url}")
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app_or_blueprint.errorhandler(500)
    def internal_error(error):
        logger.error(f"500 error: {request.url} - {str(error)}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500
