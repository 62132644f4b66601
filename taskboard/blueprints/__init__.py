"""HTTP blueprints. Shared request-shape helpers live here."""

from flask import request

from taskboard.errors import ValidationError


def json_body(required=()):
    """The request's JSON object body, with ``required`` keys present.

    Raises ValidationError for non-JSON bodies, non-object bodies and
    missing keys. Value types are checked by the services.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    missing = [key for key in required if key not in data]
    if missing:
        raise ValidationError(
            "Validation error",
            details=[{"field": key, "message": "Required"} for key in missing],
        )
    return data
