# app/domain/errors.py


class CartError(Exception):
    """Base for failures the API turns into an HTTP response."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(CartError):
    status_code = 400


class NotFoundError(CartError):
    status_code = 404


class InsufficientStockError(CartError):
    status_code = 400


class LimitExceededError(CartError):
    status_code = 400


class BelowMinimumError(CartError):
    status_code = 400


class InvalidStateError(CartError):
    status_code = 400


class ConflictError(CartError):
    status_code = 409


class AuthenticationError(CartError):
    status_code = 401


class ServiceUnavailableError(CartError):
    status_code = 503
