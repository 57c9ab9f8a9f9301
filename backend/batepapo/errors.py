from typing import List, Optional


class ChatError(Exception):
    """Base error for everything the chat core can refuse."""

    status_code = 500

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationError(ChatError):
    """Invalid payload"""

    status_code = 422

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class NotFound(ChatError):
    """Resource not found"""

    status_code = 404


class Conflict(ChatError):
    """Name already in use"""

    status_code = 409


class Forbidden(ChatError):
    """Not allowed to change this message"""

    # The public contract answers 401 for ownership failures as well.
    status_code = 401


class Unauthorized(ChatError):
    """User is not in the room"""

    status_code = 401


class RecipientNotFound(ChatError):
    """Recipient is not in the room"""

    status_code = 400


class MissingUser(ChatError):
    """Missing 'user' header"""

    status_code = 400


class StoreUnavailable(ChatError):
    """Storage backend failure"""

    status_code = 500


class DuplicateKey(Exception):
    """Raised by a store when a unique key already exists."""
