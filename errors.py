# errors.py


class UploadServiceError(Exception):
    """Base class for every error the upload service reports."""


class ValidationError(UploadServiceError):
    """A required form field or file is missing."""


class ConfigurationError(UploadServiceError):
    """A required setting is missing or malformed."""


class ProviderError(UploadServiceError):
    """The storage provider or the mail transport failed."""
