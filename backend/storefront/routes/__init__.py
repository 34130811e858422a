# Overview: Shared route helpers and the single StorefrontError -> JSON translation.

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..errors import StorefrontError
from ..services.collaborators import Upload


def register_error_handlers(app):
    """
    Services raise typed StorefrontError subclasses; each maps to its
    status_code here. Anything else is logged and returned as a generic 500.
    """

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e: StorefrontError):
        if e.status_code >= 500:
            current_app.logger.error("%s on %s %s: %s", type(e).__name__, request.method, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def request_payload() -> dict:
    """
    JSON body, or multipart form fields when files are attached.

    Form values stay strings; services accept JSON-encoded lists
    (variants, images, ...) in either shape.
    """
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def request_uploads(field: str = "images") -> list[Upload]:
    """Files posted under `field`; the view type may be sent as `<field>_type`."""
    view_type = request.form.get(f"{field}_type") or "front"
    return [
        Upload(f.filename, f.read(), view_type)
        for f in request.files.getlist(field)
        if f and f.filename
    ]
