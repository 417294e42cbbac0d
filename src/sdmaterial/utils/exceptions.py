"""
Custom exceptions for sdmaterial.

Every failure a generation job can run into is one of these types. The
orchestrator turns them into a FAILED job; the CLI maps them to exit codes.
"""


class SDMaterialError(Exception):
    """Base exception for all sdmaterial errors."""

    pass


class ValidationError(SDMaterialError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str = "") -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Name of the field that failed validation (optional)
        """
        self.field = field
        super().__init__(message)


class ConfigurationError(SDMaterialError):
    """Raised when there is a configuration problem."""

    pass


class TransportError(SDMaterialError):
    """Base class for failures raised by the HTTP transport."""

    pass


class NetworkError(TransportError):
    """Raised when the server cannot be reached."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize network error.

        Args:
            message: Error message
            original_error: The underlying exception that caused this error
        """
        self.original_error = original_error
        super().__init__(message)


class RequestTimeoutError(TransportError):
    """Raised when a request exceeds the transport timeout."""

    pass


class ProtocolError(TransportError):
    """Raised when the server answers with an HTTP error status."""

    def __init__(self, message: str, status_code: int = 0, response: str = "") -> None:
        """
        Initialize protocol error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: Excerpt of the response body (if available)
        """
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class AuthRequiredError(ProtocolError):
    """Raised on 401/403. Never retried automatically."""

    pass


class InvalidResponseError(SDMaterialError):
    """Raised when a response body is not the JSON document we expected."""

    def __init__(self, message: str, response: str = "") -> None:
        self.response = response
        super().__init__(message)


class EmptyResultError(SDMaterialError):
    """Raised when the server reports success but returns no images."""

    pass


class ImageProcessingError(SDMaterialError):
    """Raised when image processing fails."""

    def __init__(self, message: str, image_path: str = "") -> None:
        """
        Initialize image processing error.

        Args:
            message: Error message
            image_path: Path to the image that caused the error
        """
        self.image_path = image_path
        super().__init__(message)


class CorruptImageError(ImageProcessingError):
    """Raised when returned image data cannot be base64-decoded or opened."""

    pass


class MaterialSinkError(SDMaterialError):
    """Raised when the host material sink rejects a finished material."""

    pass
