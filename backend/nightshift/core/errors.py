import logging

logger = logging.getLogger(__name__)


def handle_record_error(record_id: int, error: Exception):
    """
    centralized error handler for per-file processing failures
    the drain keeps going, so this only logs
    """
    logger.error(f"file {record_id} failed: {error}", exc_info=error)


class NightShiftException(Exception):
    """base exception for nightshift-specific errors"""
    pass


class DuplicateHashError(NightShiftException):
    """raised when an insert collides with an existing content hash"""

    def __init__(self, file_hash: str):
        super().__init__(f"content hash already registered: {file_hash}")
        self.file_hash = file_hash


class RegistryUnavailableError(NightShiftException):
    """raised when the registry store cannot be reached"""
    pass


class MediaOperationError(NightShiftException):
    """raised when an external media operation fails"""

    def __init__(self, message: str, output_path: str = None):
        super().__init__(message)
        self.output_path = output_path


class SourceMissingError(MediaOperationError):
    """raised when the source file for an operation is gone"""
    pass


class InvalidScheduleError(NightShiftException, ValueError):
    """raised when a schedule time is not HH:MM"""
    pass
