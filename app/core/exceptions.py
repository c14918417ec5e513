"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class MissingFieldsException(BadRequestException):
    """Required request fields are absent or blank."""

    def __init__(self, message: str = "All fields are required"):
        super().__init__(message)


class MalformedClaimException(BadRequestException):
    """Verified identity claim lacks a subject id."""

    def __init__(self, message: str = "Identity claim has no subject id"):
        super().__init__(message)


class InvalidTokenException(AppException):
    """Identity token or session credential could not be verified."""

    def __init__(self, message: str = "Invalid or expired token"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class AlreadyExistsException(AppException):
    """Conflict with an existing account or record."""

    def __init__(self, message: str = "User already exists"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)


class StoreUnavailableException(AppException):
    """Identity platform or user store call failed."""

    def __init__(self, message: str = "User store unavailable"):
        super().__init__(message, status_code=500)
