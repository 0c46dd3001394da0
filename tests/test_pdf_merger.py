"""
Unit tests for the PDF merger functionality.

This module contains tests that verify the merge_pdfs function, including
page ordering, all-or-nothing behaviour and error handling.
"""
import unittest
import os
import tempfile
import shutil
from unittest import mock
from pypdf import PdfReader, PdfWriter

from pdf_merge_service.backend.errors import ErrorKind, MergeServiceError
from pdf_merge_service.backend.utils.pdf_merger import merge_pdfs, read_pdf


def create_pdf(file_path, widths):
    """
    Create a PDF with one blank page per entry in widths.

    Each page gets a distinct width so that page order can be checked after merging.
    """
    writer = PdfWriter()
    for width in widths:
        writer.add_blank_page(width=width, height=200)
    with open(file_path, 'wb') as outfile:
        writer.write(outfile)


def page_widths(file_path):
    reader = PdfReader(file_path)
    return [float(page.mediabox.width) for page in reader.pages]


class TestPDFMerger(unittest.TestCase):
    """Test cases for merge_pdfs."""

    def setUp(self):
        """Set up test environment with temporary files before each test."""
        self.test_dir = tempfile.mkdtemp()
        self.file_a = os.path.join(self.test_dir, 'a.pdf')
        self.file_b = os.path.join(self.test_dir, 'b.pdf')
        create_pdf(self.file_a, [100, 101])
        create_pdf(self.file_b, [200, 201, 202])
        self.output_path = os.path.join(self.test_dir, 'merged.pdf')

    def tearDown(self):
        """Clean up test files after each test."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def assertNoOutput(self):
        leftovers = [name for name in os.listdir(self.test_dir) if name.startswith('merged')]
        self.assertEqual(leftovers, [])

    def test_merge_pdfs_success(self):
        """Pages of every input appear in input order."""
        page_count = merge_pdfs([self.file_a, self.file_b], self.output_path)

        self.assertEqual(page_count, 5)
        self.assertTrue(os.path.getsize(self.output_path) > 0)
        self.assertEqual(page_widths(self.output_path), [100, 101, 200, 201, 202])

    def test_merge_pdfs_respects_input_order(self):
        merge_pdfs([self.file_b, self.file_a], self.output_path)

        self.assertEqual(page_widths(self.output_path), [200, 201, 202, 100, 101])

    def test_merge_many_single_page_files(self):
        paths = []
        for index in range(4):
            path = os.path.join(self.test_dir, f'single{index}.pdf')
            create_pdf(path, [300 + index])
            paths.append(path)

        self.assertEqual(merge_pdfs(paths, self.output_path), 4)
        self.assertEqual(page_widths(self.output_path), [300, 301, 302, 303])

    def test_merge_pdfs_requires_two_inputs(self):
        for inputs in ([], [self.file_a]):
            with self.assertRaises(MergeServiceError) as context:
                merge_pdfs(inputs, self.output_path)
            self.assertEqual(context.exception.kind, ErrorKind.TOO_FEW_FILES)
            self.assertEqual(context.exception.status_code, 400)
        self.assertNoOutput()

    def test_merge_pdfs_invalid_files(self):
        """An unparseable input aborts the merge and names the file."""
        invalid_file = os.path.join(self.test_dir, 'invalid.pdf')
        with open(invalid_file, 'w', encoding='utf-8') as file:
            file.write('This is not a PDF file')

        with self.assertRaises(MergeServiceError) as context:
            merge_pdfs([self.file_a, invalid_file], self.output_path)

        self.assertEqual(context.exception.kind, ErrorKind.INVALID_PDF)
        self.assertIn('invalid.pdf', context.exception.message)
        self.assertNoOutput()

    def test_merge_pdfs_uses_display_names(self):
        invalid_file = os.path.join(self.test_dir, 'pdfs-1-2.pdf')
        with open(invalid_file, 'wb') as file:
            file.write(b'%PDF-1.7\ngarbage')

        with self.assertRaises(MergeServiceError) as context:
            merge_pdfs(
                [self.file_a, invalid_file], self.output_path,
                display_names=['first.pdf', 'report.pdf']
            )

        self.assertIn('report.pdf', context.exception.message)
        self.assertNotIn('pdfs-1-2.pdf', context.exception.message)

    def test_merge_pdfs_empty_file(self):
        empty_file = os.path.join(self.test_dir, 'empty.pdf')
        open(empty_file, 'wb').close()

        with self.assertRaises(MergeServiceError) as context:
            merge_pdfs([empty_file, self.file_a], self.output_path)

        self.assertEqual(context.exception.kind, ErrorKind.INVALID_PDF)
        self.assertIn('empty.pdf', context.exception.message)
        self.assertNoOutput()

    def test_merge_pdfs_encrypted_file(self):
        encrypted_file = os.path.join(self.test_dir, 'locked.pdf')
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)
        writer.encrypt('secret')
        with open(encrypted_file, 'wb') as outfile:
            writer.write(outfile)

        with self.assertRaises(MergeServiceError) as context:
            merge_pdfs([self.file_a, encrypted_file], self.output_path)

        self.assertEqual(context.exception.kind, ErrorKind.INVALID_PDF)
        self.assertIn('encrypted', context.exception.message)
        self.assertNoOutput()

    def test_merge_pdfs_unwritable_output(self):
        output_path = os.path.join(self.test_dir, 'missing-dir', 'merged.pdf')

        with self.assertRaises(MergeServiceError) as context:
            merge_pdfs([self.file_a, self.file_b], output_path)

        self.assertEqual(context.exception.kind, ErrorKind.INTERNAL)
        self.assertEqual(context.exception.status_code, 500)
        self.assertFalse(os.path.exists(output_path))

    def test_merge_pdfs_serialization_failure(self):
        """A failure inside pypdf while writing leaves no partial file behind."""
        with mock.patch.object(PdfWriter, 'write', side_effect=RuntimeError('serialize')):
            with self.assertRaises(RuntimeError):
                merge_pdfs([self.file_a, self.file_b], self.output_path)

        self.assertNoOutput()

    def test_read_pdf_counts_pages(self):
        _, page_count = read_pdf(self.file_b)
        self.assertEqual(page_count, 3)


if __name__ == '__main__':
    unittest.main()
