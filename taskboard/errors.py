"""Board error taxonomy.

Every error the API surfaces derives from BoardError and carries the HTTP
status and a stable machine code. create_app() registers one handler that
renders them as {"error": ..., "code": ...}.

BroadcastDeliveryFailure is the exception: it is raised by a subscriber
channel write and never leaves the broadcast hub.
"""


class BoardError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Internal server error"

    def __init__(self, message=None, details=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_dict(self):
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BoardError, ValueError):
    """Request body has the wrong shape (not JSON, missing/mistyped fields)."""

    status_code = 400
    code = "validation_error"
    message = "Validation error"


class InvalidMoveIntent(BoardError, ValueError):
    """A well-formed move request that cannot be executed as an ordering."""

    status_code = 400
    code = "invalid_move_intent"
    message = "Invalid move"


class Unauthenticated(BoardError):
    status_code = 401
    code = "unauthenticated"
    message = "Unauthorized"


class Unauthorized(BoardError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class NotFound(BoardError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class TransactionConflict(BoardError):
    """The store rejected the write because of a concurrent transaction."""

    status_code = 409
    code = "transaction_conflict"
    message = "Board changed concurrently, please retry"


class BroadcastDeliveryFailure(Exception):
    """A frame could not be written to one subscriber channel."""

    def __init__(self, viewer_id, reason):
        super().__init__(f"delivery to {viewer_id} failed: {reason}")
        self.viewer_id = viewer_id
        self.reason = reason
