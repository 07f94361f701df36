"""
Errors raised by file storage repositories.
"""


class FileStorageError(RuntimeError):
    """Raised when the file store is unreachable or rejects a call"""

    pass
