"""
PDF merging utility module.

This module concatenates the pages of several PDF files into a single PDF
document using pypdf. A merge is all-or-nothing: every input is parsed before
anything is written, and the output only appears at its final path once it
has been completely written.
"""
import io
import os
import logging
import secrets
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from ..errors import ErrorKind, MergeServiceError

logger = logging.getLogger(__name__)

# Exceptions pypdf lets escape when handed a damaged or non-PDF file
PARSE_ERRORS = (PdfReadError, ValueError, TypeError, KeyError, AttributeError, IndexError)


def invalid_pdf_message(name):
    """Build the client-facing message for an input that failed to parse."""
    return f"Error processing {name}. Please ensure it's a valid PDF file."


def read_pdf(path, name=None):
    """
    Parse a PDF file into a reader whose pages can be copied.

    Args:
        path (str): Path of the PDF file on disk
        name (str, optional): Name used in error messages, defaults to the basename

    Returns:
        tuple: The PdfReader and the number of pages it holds

    Raises:
        MergeServiceError: INVALID_PDF if the file is empty, encrypted or cannot be parsed
    """
    name = name or os.path.basename(path)

    if os.path.getsize(path) == 0:
        logger.error("File is empty: %s", path)
        raise MergeServiceError(ErrorKind.INVALID_PDF, invalid_pdf_message(name))

    with open(path, 'rb') as pdf_file:
        pdf_bytes = pdf_file.read()

    try:
        pdf_reader = PdfReader(io.BytesIO(pdf_bytes))
        if pdf_reader.is_encrypted:
            logger.error("Encrypted PDF detected: %s", name)
            raise MergeServiceError(
                ErrorKind.INVALID_PDF,
                f'PDF file {name} is encrypted. Please remove password protection before uploading.'
            )
        page_count = len(pdf_reader.pages)
    except PARSE_ERRORS as ex:
        logger.error("Error processing file %s: %s", name, str(ex))
        raise MergeServiceError(ErrorKind.INVALID_PDF, invalid_pdf_message(name)) from ex

    logger.info("Found %d pages in %s", page_count, name)
    return pdf_reader, page_count


def merge_pdfs(input_paths, output_path, display_names=None):
    """
    Merge multiple PDF files into a single PDF file.

    Pages are appended in the order of input_paths, and within each input in
    their original order.

    Args:
        input_paths (list): Paths of the PDF files to merge
        output_path (str): Path where the merged PDF should be saved
        display_names (list, optional): Names reported in error messages, one per input

    Returns:
        int: Number of pages in the merged document

    Raises:
        MergeServiceError: TOO_FEW_FILES with fewer than two inputs, INVALID_PDF
            when an input cannot be parsed, INTERNAL when the output cannot be written
    """
    if not input_paths or len(input_paths) < 2:
        logger.error("At least two PDF files are required for merging")
        raise MergeServiceError(
            ErrorKind.TOO_FEW_FILES, 'Please upload at least 2 PDF files to merge'
        )

    if display_names is None:
        display_names = [os.path.basename(path) for path in input_paths]

    pdf_writer = PdfWriter()

    for path, name in zip(input_paths, display_names):
        logger.info("Processing file: %s", name)
        pdf_reader, _ = read_pdf(path, name)
        try:
            for page in pdf_reader.pages:
                pdf_writer.add_page(page)
        except PARSE_ERRORS as ex:
            logger.error("Error copying pages from %s: %s", name, str(ex))
            raise MergeServiceError(ErrorKind.INVALID_PDF, invalid_pdf_message(name)) from ex

    page_count = len(pdf_writer.pages)
    write_pdf(pdf_writer, output_path)
    logger.info("Successfully created merged PDF %s with %d pages", output_path, page_count)
    return page_count


def write_pdf(pdf_writer, output_path):
    """
    Serialize a PdfWriter to output_path.

    The document is written next to the destination under a temporary name
    and renamed into place, so a failed write never leaves a partial file at
    output_path.

    Raises:
        MergeServiceError: INTERNAL if the document cannot be written
    """
    partial_path = f"{output_path}.{secrets.token_hex(4)}.part"
    logger.info("Writing merged PDF to: %s", output_path)
    try:
        with open(partial_path, 'wb') as output_file:
            pdf_writer.write(output_file)
        os.replace(partial_path, output_path)
    except (IOError, OSError) as ex:
        logger.error("Error writing merged PDF to %s: %s", output_path, str(ex))
        raise MergeServiceError(
            ErrorKind.INTERNAL, 'An error occurred while merging the PDF files'
        ) from ex
    finally:
        # Only left over when the write or the rename failed
        try:
            if os.path.exists(partial_path):
                os.remove(partial_path)
        except OSError as error:
            logger.error("Error removing file %s: %s", partial_path, error)
