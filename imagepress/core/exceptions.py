from typing import Any

class ImagePressException(Exception):
    status_code: int = 400

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

class NotFoundError(ImagePressException):
    status_code = 404

class InvalidInputError(ImagePressException):
    status_code = 400

class ConflictError(ImagePressException):
    status_code = 409

class ProcessingError(ImagePressException):
    status_code = 500

class StorageError(ImagePressException):
    status_code = 500

class IntegrityError(ImagePressException):
    """A completed job is missing an artifact it must have."""
    status_code = 500
