"""
Error types raised by the wagering and settlement services.

Every error carries the HTTP status the web layer should answer with and a
short machine readable code. Routes never catch these; the handler registered
in ``register_error_handlers`` turns them into JSON responses.
"""


class WagerError(Exception):
    """Base class for all domain failures"""

    status_code = 400
    code = "wager_error"

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class NotFound(WagerError):
    """Requested resource does not exist"""

    status_code = 404
    code = "not_found"


class MatchNotFound(NotFound):
    """Match not found"""

    code = "match_not_found"


class InvalidOutcome(WagerError):
    """Winner must be one of the two teams playing the match"""

    code = "invalid_outcome"


class InvalidTeam(WagerError):
    """Selected team is not playing in this match"""

    code = "invalid_team"


class InvalidAmount(WagerError):
    """Wager amount is not one of the allowed amounts"""

    code = "invalid_amount"


class MatchClosed(WagerError):
    """Match is no longer open for wagers"""

    status_code = 409
    code = "match_closed"


class Unauthorized(WagerError):
    """You are not allowed to perform this action"""

    status_code = 403
    code = "unauthorized"


class StorageUnavailable(WagerError):
    """Storage backend is unavailable"""

    status_code = 503
    code = "storage_unavailable"


class UsernameTaken(WagerError):
    """Username already exists"""

    status_code = 409
    code = "username_taken"
