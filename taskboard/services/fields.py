"""Input cleaning shared by the services.

User text is sanitized with bleach.clean() to strip HTML tags. Every
helper raises ValidationError (a ValueError) with a message that names
the offending field.
"""

from datetime import datetime, timezone

import bleach

from taskboard.errors import ValidationError


def sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(str(text), tags=[], strip=True).strip()


def required_text(data, field, min_length=1, max_length=None):
    value = sanitize(data.get(field))
    if not value:
        raise ValidationError(f"{field} is required.")
    if len(value) < min_length:
        raise ValidationError(f"{field} must be at least {min_length} characters.")
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters.")
    return value


def choice(value, choices, field):
    if value not in choices:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(choices)}"
        )
    return value


def optional_datetime(value, field):
    """Parse an ISO-8601 string (or None) into an aware datetime."""
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 date string.")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date string.") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def optional_number(value, field, minimum=None, maximum=None, integer=False):
    if value is None:
        return None
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise ValidationError(f"{field} must be a {'whole ' if integer else ''}number.")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}.")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be at most {maximum}.")
    return value


def optional_bool(value, field):
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false.")
    return value
