class BrainScanError(Exception):
    """Base class for every error raised by brainscan."""


class UploadValidationError(BrainScanError):
    status_code = 400


class InvalidFileTypeError(UploadValidationError):
    status_code = 400


class FileTooLargeError(UploadValidationError):
    status_code = 413


class DecodeError(BrainScanError):
    status_code = 422


class InferenceError(BrainScanError):
    status_code = 500


class PersistenceError(BrainScanError):
    status_code = 500


class StorageError(PersistenceError):
    pass


class RecordNotFoundError(PersistenceError):
    status_code = 404


class AuthError(BrainScanError):
    status_code = 401
