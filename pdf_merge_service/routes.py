"""
API endpoints for merging uploaded PDF files and downloading the result.
"""
import os
import logging
from flask import Blueprint, request, jsonify, send_file, current_app, url_for, after_this_request

from .extensions import limiter
from .backend.errors import ErrorKind, MergeServiceError
from .backend.storage import MergedDocument
from .backend.utils.pdf_merger import merge_pdfs

logger = logging.getLogger('pdf_merger')

PDF_MIMETYPE = 'application/pdf'

bp = Blueprint('api', __name__, url_prefix='/api')


def get_storage():
    """Return the TempStorage configured for the current application."""
    return current_app.extensions['temp_storage']


@bp.route('/health', methods=['GET'])
def health_check():
    """Report that the service is up."""
    return jsonify({'status': 'OK', 'message': 'PDF Merger API is running'})


def validate_uploads(files):
    """
    Check the count and declared media types of the uploaded files.

    Raises:
        MergeServiceError: TOO_MANY_FILES, TOO_FEW_FILES or INVALID_MEDIA_TYPE
    """
    max_files = current_app.config['MAX_FILES']
    min_files = current_app.config['MIN_FILES']

    if len(files) > max_files:
        raise MergeServiceError(
            ErrorKind.TOO_MANY_FILES, f'Too many files. Maximum is {max_files} files.'
        )
    if len(files) < min_files:
        raise MergeServiceError(
            ErrorKind.TOO_FEW_FILES, f'Please upload at least {min_files} PDF files to merge'
        )

    for file in files:
        if file.mimetype != PDF_MIMETYPE:
            logger.error("Invalid file: %s, content type is %s", file.filename, file.mimetype)
            raise MergeServiceError(ErrorKind.INVALID_MEDIA_TYPE, 'Only PDF files are allowed!')


def merge_uploads(storage, uploads):
    """
    Merge staged uploads into a new document in storage.

    Args:
        storage (TempStorage): Storage holding the uploads and receiving the output
        uploads (list): UploadedFile objects, in upload order

    Returns:
        MergedDocument: The stored result
    """
    output_name = storage.output_name()
    output_path = storage.path_for(output_name)
    page_count = merge_pdfs(
        [upload.path for upload in uploads],
        output_path,
        display_names=[upload.original_name for upload in uploads],
    )
    try:
        size = os.path.getsize(output_path)
    except OSError:
        storage.remove(output_path)
        raise
    return MergedDocument(
        filename=output_name,
        size=size,
        path=output_path,
        page_count=page_count,
    )


@bp.route('/merge', methods=['POST'])
@limiter.limit(lambda: current_app.config['MERGE_RATE_LIMIT'])
def merge_files():
    """Merge the uploaded PDF files and return a download reference."""
    field = current_app.config['UPLOAD_FIELD']
    files = [file for file in request.files.getlist(field) if file and file.filename]
    logger.info("Number of files received: %d", len(files))

    validate_uploads(files)

    storage = get_storage()
    uploads = []
    try:
        for file in files:
            uploads.append(storage.stage_upload(file, field))
        document = merge_uploads(storage, uploads)
    except MergeServiceError:
        raise
    except (ValueError, TypeError, IOError, OSError, RuntimeError) as ex:
        logger.exception("Error merging PDFs: %s", str(ex))
        raise MergeServiceError(
            ErrorKind.INTERNAL, 'An error occurred while merging the PDF files'
        ) from ex
    finally:
        storage.remove_all([upload.path for upload in uploads])

    logger.info(
        "Merge successful. Created %s (%d pages, %d bytes)",
        document.filename, document.page_count, document.size
    )
    return jsonify({
        'success': True,
        'message': 'PDFs merged successfully!',
        'downloadUrl': url_for('api.download_file', filename=document.filename),
        'filename': document.filename,
        'pageCount': document.page_count,
    })


@bp.route('/download/<filename>', methods=['GET'])
def download_file(filename):
    """Serve a merged PDF once, then delete it."""
    storage = get_storage()
    claimed_path = storage.claim(filename)

    try:
        response = send_file(
            claimed_path,
            mimetype=PDF_MIMETYPE,
            as_attachment=True,
            download_name=filename,
        )
    except (IOError, OSError) as ex:
        logger.exception("Download error for %s: %s", filename, str(ex))
        storage.release(claimed_path, filename)
        raise MergeServiceError(ErrorKind.INTERNAL, 'Error downloading file') from ex

    @after_this_request
    def remove_download(response):
        storage.remove(claimed_path)
        return response

    logger.info("Serving file: %s", filename)
    return response
