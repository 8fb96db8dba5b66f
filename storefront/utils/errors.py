# storefront/utils/errors.py
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from ..extensions import db
from .api import api_error

log = logging.getLogger(__name__)


class ServiceError(ValueError):
    status = 422
    code = "invalid_request"

    def __init__(self, message, code=None, status=None, data=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status
        self.data = data


class NotFound(ServiceError):
    status = 404
    code = "not_found"


class Conflict(ServiceError):
    status = 409
    code = "conflict"


class Forbidden(ServiceError):
    status = 403
    code = "forbidden"


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        # drop half-applied changes from the failed operation
        db.session.rollback()
        r = jsonify(api_error(e.message, e.data, e.code))
        r.status_code = e.status
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        r = jsonify(api_error(e.description or e.name, code=e.name.lower().replace(" ", "_")))
        r.status_code = e.code or 500
        return r
