"""
Temporary storage for uploaded and merged PDF files.

All files live in one directory handed in through configuration. Uploaded
inputs are staged there for the length of a merge request; merged outputs
stay there until they are downloaded once or expire.
"""
import os
import time
import logging
import secrets
from dataclasses import dataclass

from werkzeug.security import safe_join

from .errors import ErrorKind, MergeServiceError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PDF_SUFFIX = '.pdf'
CLAIMED_SUFFIX = '.claimed'


@dataclass
class UploadedFile:
    """An uploaded file staged on disk for a single merge request."""

    original_name: str
    size: int
    media_type: str
    path: str


@dataclass
class MergedDocument:
    """A merged PDF waiting to be downloaded."""

    filename: str
    size: int
    path: str
    page_count: int


def timestamp_ms():
    return int(time.time() * 1000)


def format_size_limit(max_size):
    """Render a byte limit the way it is shown to users, e.g. 10MB."""
    if max_size % (1024 * 1024) == 0:
        return f"{max_size // (1024 * 1024)}MB"
    if max_size % 1024 == 0:
        return f"{max_size // 1024}KB"
    return f"{max_size} bytes"


class TempStorage:
    """
    A directory of transient PDF files.

    Args:
        directory (str): Directory holding staged inputs and merged outputs
        max_file_size (int): Largest accepted upload, in bytes
    """

    def __init__(self, directory, max_file_size):
        self.directory = os.path.abspath(directory)
        self.max_file_size = max_file_size
        self.last_sweep = 0.0
        os.makedirs(self.directory, exist_ok=True)

    def staging_name(self, field_name):
        """Generate a name for an uploaded input, e.g. pdfs-1700000000000-123456789.pdf."""
        suffix = secrets.randbelow(10 ** 9)
        return f"{field_name}-{timestamp_ms()}-{suffix}{PDF_SUFFIX}"

    def output_name(self):
        """Generate a name for a merged output, e.g. merged-1700000000000-1a2b3c4d.pdf."""
        return f"merged-{timestamp_ms()}-{secrets.token_hex(4)}{PDF_SUFFIX}"

    def path_for(self, filename):
        """
        Resolve a filename inside the storage directory.

        Returns:
            str: Absolute path, or None if filename would escape the directory
        """
        if not filename or os.path.basename(filename) != filename:
            return None
        return safe_join(self.directory, filename)

    def stage_upload(self, file_storage, field_name):
        """
        Copy an uploaded file to disk, enforcing the size limit while copying.

        Args:
            file_storage (werkzeug.datastructures.FileStorage): The uploaded file
            field_name (str): Form field the file arrived in

        Returns:
            UploadedFile: The staged file

        Raises:
            MergeServiceError: FILE_TOO_LARGE if the upload exceeds max_file_size
        """
        path = os.path.join(self.directory, self.staging_name(field_name))
        size = 0
        too_large = False

        with open(path, 'wb') as staged:
            while True:
                chunk = file_storage.stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_file_size:
                    too_large = True
                    break
                staged.write(chunk)

        if too_large:
            self.remove(path)
            logger.error("Upload %s exceeds %d bytes", file_storage.filename, self.max_file_size)
            raise MergeServiceError(
                ErrorKind.FILE_TOO_LARGE,
                f'File too large. Maximum size is {format_size_limit(self.max_file_size)}.'
            )

        logger.debug("Staged upload %s (%d bytes) at %s", file_storage.filename, size, path)
        return UploadedFile(
            original_name=file_storage.filename,
            size=size,
            media_type=file_storage.mimetype,
            path=path,
        )

    def claim(self, filename):
        """
        Take ownership of a stored file so that only one caller can serve it.

        The file is renamed to a private name; of several concurrent callers
        only the one whose rename succeeds gets a path back.

        Returns:
            str: Path of the claimed file

        Raises:
            MergeServiceError: NOT_FOUND if no such file exists or it was already claimed
        """
        path = self.path_for(filename)
        if path is None or not filename.endswith(PDF_SUFFIX) or not os.path.isfile(path):
            logger.error("File not found: %s", filename)
            raise MergeServiceError(ErrorKind.NOT_FOUND, 'File not found')

        claimed_path = f"{path}.{secrets.token_hex(4)}{CLAIMED_SUFFIX}"
        try:
            os.rename(path, claimed_path)
        except FileNotFoundError as ex:
            logger.info("File %s was claimed by another request", filename)
            raise MergeServiceError(ErrorKind.NOT_FOUND, 'File not found') from ex
        return claimed_path

    def release(self, claimed_path, filename):
        """
        Give a claimed file back under its original name so it can be served again.

        Failures are logged, the file then stays claimed until the expiry sweep.
        """
        try:
            os.rename(claimed_path, self.path_for(filename))
            logger.info("Released %s for another download", filename)
        except OSError as error:
            logger.error("Error releasing file %s: %s", claimed_path, error)

    def remove(self, path):
        """Delete a file, logging instead of raising on failure."""
        try:
            if os.path.exists(path):
                os.remove(path)
                logger.debug("Removed file: %s", path)
        except OSError as error:
            logger.error("Error removing file %s: %s", path, error)

    def remove_all(self, paths):
        """Delete every file in paths; see remove()."""
        for path in paths:
            self.remove(path)

    def sweep_expired(self, max_age, now=None):
        """
        Delete stored files older than max_age seconds.

        Args:
            max_age (float): Age in seconds after which a file is removed
            now (float, optional): Reference time, defaults to time.time()

        Returns:
            int: Number of files removed
        """
        now = time.time() if now is None else now
        removed = 0
        try:
            entries = list(os.scandir(self.directory))
        except OSError as error:
            logger.error("Cannot list storage directory %s: %s", self.directory, error)
            return 0

        for entry in entries:
            try:
                if not entry.is_file() or now - entry.stat().st_mtime <= max_age:
                    continue
            except OSError:
                continue
            logger.info("Removing expired file: %s", entry.name)
            self.remove(entry.path)
            removed += 1

        if removed:
            logger.info("Cleanup summary: removed %d expired files", removed)
        return removed
