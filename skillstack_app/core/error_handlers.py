"""
JSON response envelopes and Flask error handlers.

Successful API calls answer ``{"success": true, "data": ...}``; failures
answer ``{"success": false, "message", "code", "details"}`` with the status
code carried by the exception class.
"""

from typing import Any, Dict, Optional

from flask import current_app, jsonify, request

from .exceptions import SkillStackError


def _is_api_request() -> bool:
    return request.path.startswith('/api/')


def error_response(message: str, code: str = 'ERROR', status_code: int = 400,
                   details: Optional[Dict] = None) -> tuple:
    body = {'success': False, 'message': message, 'code': code}
    if details:
        body['details'] = details
    return jsonify(body), status_code


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    return body


def register_error_handlers(app):
    """Map SkillStackError subclasses and the common HTTP errors to JSON bodies."""

    @app.errorhandler(SkillStackError)
    def handle_skillstack_error(error):
        current_app.logger.log(
            error.log_level, "%s on %s %s: %s %s",
            error.code, request.method, request.path, error.message, error.details or ''
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        if _is_api_request():
            return error_response('Endpoint not found', 'NOT_FOUND', 404)
        return error

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        if _is_api_request():
            return error_response('Method not allowed', 'METHOD_NOT_ALLOWED', 405)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        current_app.logger.exception('Unhandled error on %s %s', request.method, request.path)
        if _is_api_request():
            return error_response('Internal server error', 'SERVER_ERROR', 500)
        return error
