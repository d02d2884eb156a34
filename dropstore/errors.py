"""Error taxonomy shared by the store layer and the HTTP routers.

Every error carries the status code it maps to and a message that is safe
to return to the caller. Internal detail goes to the log, never into the
message.
"""


class ShopError(Exception):
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(ShopError):
    status_code = 400


class AuthError(ShopError):
    status_code = 401


class InvalidKey(AuthError):
    pass


class ForbiddenError(ShopError):
    status_code = 403


class NotFound(ShopError):
    status_code = 404


class InsufficientStock(ShopError):
    status_code = 400

    def __init__(self, message: str, *, variant_id: int | None = None):
        super().__init__(message)
        self.variant_id = variant_id


class Conflict(ShopError):
    status_code = 409


class StoreError(ShopError):
    status_code = 500


class ExternalServiceError(ShopError):
    status_code = 502


class AlreadySettled(Exception):
    """Raised when a payment session already has an order."""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id
