"""File processing utilities for extracting text from story documents."""
from pathlib import Path
import pypdf
from docx import Document as DocxDocument
from docx.table import Table

from app.core.exceptions import ExtractionError, UnsupportedFormat


class FileProcessor:
    """Extract plain text content from uploaded story files."""

    SUPPORTED_EXTENSIONS = {'.txt', '.docx', '.pdf'}

    @staticmethod
    def extract_text(file_path: str, original_filename: str) -> str:
        """
        Extract text from a file.

        The format is picked from ``original_filename`` because staged uploads
        are stored under generated names.

        Args:
            file_path: Path to the file on disk
            original_filename: Name the file was uploaded with

        Returns:
            Extracted plain text

        Raises:
            UnsupportedFormat: If the extension is not .txt, .docx or .pdf
            ExtractionError: If the file cannot be read or parsed
        """
        extension = Path(original_filename or "").suffix.lower()

        if extension not in FileProcessor.SUPPORTED_EXTENSIONS:
            raise UnsupportedFormat(f"Unsupported file format: {extension or original_filename}")

        if extension == '.pdf':
            return FileProcessor._extract_from_pdf(file_path)
        elif extension == '.docx':
            return FileProcessor._extract_from_docx(file_path)
        return FileProcessor._extract_from_text(file_path)

    @staticmethod
    def _extract_from_pdf(file_path: str) -> str:
        """Extract text from PDF file."""
        text_parts = []

        try:
            with open(file_path, 'rb') as file:
                pdf_reader = pypdf.PdfReader(file)

                for page in pdf_reader.pages:
                    page_text = page.extract_text() or ""
                    if page_text.strip():
                        text_parts.append(page_text)
        except Exception as e:
            raise ExtractionError(f"Error extracting text from PDF: {str(e)}") from e

        return "\n\n".join(text_parts)

    @staticmethod
    def _extract_from_docx(file_path: str) -> str:
        """Extract text from DOCX file, body paragraphs and tables in document order."""
        try:
            doc = DocxDocument(file_path)
        except Exception as e:
            raise ExtractionError(f"Error extracting text from DOCX: {str(e)}") from e

        blocks = []
        for block in doc.iter_inner_content():
            if isinstance(block, Table):
                blocks.extend(FileProcessor._table_text(block))
            elif block.text.strip():
                blocks.append(block.text)
        return "\n\n".join(blocks)

    @staticmethod
    def _table_text(table: Table) -> list:
        texts = []
        for row in table.rows:
            seen = set()
            for cell in row.cells:
                # merged cells show up once per grid column they span
                if id(cell._tc) in seen:
                    continue
                seen.add(id(cell._tc))
                if cell.text.strip():
                    texts.append(cell.text)
        return texts

    @staticmethod
    def _extract_from_text(file_path: str) -> str:
        """Extract text from plain text file."""
        try:
            with open(file_path, 'rb') as file:
                raw = file.read()
        except OSError as e:
            raise ExtractionError(f"Error reading text file: {str(e)}") from e

        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError:
            # Try with different encoding
            return raw.decode('latin-1')

    @staticmethod
    def is_supported(filename: str) -> bool:
        """Check if a file format is supported."""
        extension = Path(filename or "").suffix.lower()
        return extension in FileProcessor.SUPPORTED_EXTENSIONS
