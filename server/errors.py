import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class BlogError(Exception):
    """Base class for everything the blog core raises."""


class NotFound(BlogError):
    """Requested article, index entry, cursor, token or account is absent."""


class StorageError(BlogError):
    """The key-value engine failed; the original error is chained."""


class MalformedHeader(BlogError):
    """An article metadata header is present but does not match the schema."""


def _error(code: int, message: str):
    return jsonify({"code": code, "message": message}), code


def register_error_handlers(app):
    @app.errorhandler(NotFound)
    def not_found(e):
        return _error(404, str(e) or "Not Found")

    @app.errorhandler(StorageError)
    def storage_error(e):
        logger.error("storage failure: %s", e)
        return _error(500, "Storage Error")

    @app.errorhandler(HTTPException)
    def http_error(e):
        return _error(e.code or 500, e.description or e.name)
