"""
Configuration for the PDF Merge service.

Values are read from environment variables when this module is imported and
can be overridden per application through create_app(config=...).
"""
import os
import tempfile


def env_bool(name, default):
    """
    Read a boolean flag from the environment.

    Args:
        name (str): Environment variable name
        default (bool): Value used when the variable is unset

    Returns:
        bool: True for 1, true, yes or on (any case), False otherwise
    """
    return os.environ.get(name, str(default)).lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Default settings, overridable through the environment."""

    # Directory shared by staged uploads and merged outputs
    STORAGE_DIR = os.environ.get(
        'PDF_MERGE_STORAGE_DIR', os.path.join(tempfile.gettempdir(), 'pdf-merge-service')
    )

    UPLOAD_FIELD = 'pdfs'
    MIN_FILES = 2
    MAX_FILES = 10
    MAX_FILE_SIZE = int(os.environ.get('MAX_FILE_SIZE', 10 * 1024 * 1024))  # 10MB per file
    # Whole request: every file at its limit plus room for the multipart envelope
    MAX_CONTENT_LENGTH = MAX_FILES * MAX_FILE_SIZE + 1024 * 1024

    # Merged files nobody downloads are removed after this many seconds, 0 keeps them
    OUTPUT_EXPIRY_SECONDS = int(os.environ.get('PDF_EXPIRY_SECONDS', 3600))
    CLEANUP_INTERVAL_SECONDS = int(os.environ.get('CLEANUP_INTERVAL_SECONDS', 60))

    RATELIMIT_ENABLED = env_bool('RATELIMIT_ENABLED', False)
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    MERGE_RATE_LIMIT = os.environ.get('MERGE_RATE_LIMIT', '10 per minute')

    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
