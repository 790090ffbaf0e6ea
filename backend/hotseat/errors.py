from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge


class ApiError(Exception):
    """An error with a stable, client-safe message and an HTTP status.

    The message is what the client sees. Anything diagnostic (paths, ids of
    other users, driver errors) belongs in the log, not here.
    """
    status_code = 500
    message = 'internal server error'

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class BadRequest(ApiError):
    status_code = 400
    message = 'bad request'


class Unauthorized(ApiError):
    status_code = 401
    message = 'authentication required'


class Forbidden(ApiError):
    status_code = 403
    message = 'forbidden'


class NotFound(ApiError):
    status_code = 404
    message = 'resource not found'


class Conflict(ApiError):
    status_code = 409
    message = 'conflict'


class Gone(ApiError):
    status_code = 410
    message = 'resource removed'


class PayloadTooLarge(ApiError):
    status_code = 413
    message = 'file too large'


class UnsupportedFileType(ApiError):
    status_code = 415
    message = 'invalid file type'


class TooManyRequests(ApiError):
    status_code = 429
    message = 'too many requests'


class StorageError(ApiError):
    status_code = 500
    message = 'failed to store save'


def register_error_handlers(flask_app):
    @flask_app.errorhandler(ApiError)
    def handle_api_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(exc):
        return jsonify({'error': PayloadTooLarge.message}), 413

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        if exc.code == 404:
            return jsonify({'error': NotFound.message}), 404
        return jsonify({'error': (exc.name or 'error').lower()}), exc.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected(exc):
        current_app.logger.exception(f"[error] unhandled {type(exc).__name__}")
        return jsonify({'error': 'internal server error'}), 500
