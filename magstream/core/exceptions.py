"""Error taxonomy for the streaming service."""


class StreamServiceError(Exception):
    """
    Base exception for every error the stream endpoint can report.

    ``status_code`` is the HTTP status used while the response has not started yet.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(StreamServiceError):
    """
    Raised when request parameters are missing or malformed.
    """
    status_code = 400


class AcquisitionError(StreamServiceError):
    """
    Raised when the content source rejects or cannot resolve a locator.
    """
    status_code = 500


class NotFoundError(StreamServiceError):
    """
    Raised when a bundle holds no streamable video file.
    """
    status_code = 404


class MetadataTimeoutError(StreamServiceError):
    """
    Raised when bundle metadata did not arrive within the configured wait.
    """
    status_code = 504


class StreamIOError(StreamServiceError):
    """
    Raised when opening, seeking or reading the source fails.
    """
    status_code = 500


class StreamWriteError(StreamIOError):
    """
    Raised when writing to the client fails, usually because it went away.
    """
    pass
