"""Exception types raised by the uploader."""


class FilesUploaderError(Exception):
    """Base class for all uploader errors."""
    pass


class ConfigurationError(FilesUploaderError):
    """Raised when configuration is missing or invalid. Fatal at startup."""
    pass


class EnumerationError(FilesUploaderError):
    """Raised when the local staging folder cannot be walked."""
    pass


class StoreError(FilesUploaderError):
    """Raised when an object store operation fails."""
    pass


class OperationCancelled(FilesUploaderError):
    """Raised when a stop request interrupts a network call."""
    pass
