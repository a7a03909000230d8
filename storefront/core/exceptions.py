from typing import Optional, Any


class StorefrontError(Exception):
    """
    Base exception for the storefront application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(StorefrontError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthorizationError(StorefrontError):
    """
    Raised when the acting user lacks the role an operation requires.
    """
    def __init__(self, message: str = "Not allowed", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)


class AuthenticationError(StorefrontError):
    """
    Raised when a webhook call cannot be authenticated.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class ValidationError(StorefrontError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class CallbackDecodeError(ValidationError):
    """
    Raised when an inline button token cannot be decoded.
    """
    def __init__(self, message: str = "Malformed callback token", token: Optional[str] = None):
        super().__init__(message, details={"token": token})
        self.code = "CALLBACK_DECODE_ERROR"
        self.token = token


class InvalidTransitionError(ValidationError):
    """
    Raised when a conversation or order state change is not permitted.
    """
    def __init__(self, message: str = "Invalid state transition", details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.code = "INVALID_TRANSITION"


class InsufficientStockError(StorefrontError):
    """
    Raised when an order cannot reserve the stock it needs.
    """
    def __init__(self, message: str = "Not enough stock", details: Optional[Any] = None):
        super().__init__(message, code="INSUFFICIENT_STOCK", status_code=409, details=details)


class ExternalServiceError(StorefrontError):
    """
    Raised when an external service (e.g., the Telegram Bot API) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)
