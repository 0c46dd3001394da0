"""
Error types for the PDF Merge service.

Every failure the handlers report to a client is raised as a
MergeServiceError carrying an ErrorKind; the kind alone decides the HTTP
status code of the response.
"""
import enum


class ErrorKind(enum.Enum):
    """Categories of failures surfaced to API clients."""

    TOO_FEW_FILES = 'too_few_files'
    TOO_MANY_FILES = 'too_many_files'
    FILE_TOO_LARGE = 'file_too_large'
    INVALID_MEDIA_TYPE = 'invalid_media_type'
    INVALID_PDF = 'invalid_pdf'
    NOT_FOUND = 'not_found'
    INTERNAL = 'internal'

    @property
    def status_code(self):
        """HTTP status code used when this kind of error reaches a client."""
        return STATUS_CODES[self]


STATUS_CODES = {
    ErrorKind.TOO_FEW_FILES: 400,
    ErrorKind.TOO_MANY_FILES: 400,
    ErrorKind.FILE_TOO_LARGE: 400,
    ErrorKind.INVALID_MEDIA_TYPE: 400,
    ErrorKind.INVALID_PDF: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


class MergeServiceError(Exception):
    """
    An error with a client-facing message.

    Args:
        kind (ErrorKind): Category of the failure
        message (str): Human-readable message returned in the response body
    """

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self):
        return self.kind.status_code

    def to_dict(self):
        return {'error': self.message}
