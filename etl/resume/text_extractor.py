"""
Resume Text Extractor - Convert PDF resumes into normalized plain text.

Only PDF is supported. The extension and the ``%PDF`` file signature must
both match before the document is handed to pypdf.

Normalization keeps single line breaks so that section headers survive for
NLP processing, but collapses horizontal whitespace, strips control
characters and squeezes runs of blank lines.
"""
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from core.exceptions import UnsupportedFormatError, ExtractionFailedError

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b'%PDF'

_HORIZONTAL_WS = re.compile(r'[ \t\f\v]+')
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]')
_EXCESS_NEWLINES = re.compile(r'\n{3,}')
_SPACE_AROUND_NEWLINE = re.compile(r' *\n *')


@dataclass
class ExtractedText:
    """Result of extracting text from a document.

    Attributes:
        text: Normalized plain text
        page_count: Number of pages in the source document
        metadata: Document info (title, author, ...) when available
    """
    text: str
    page_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)


def clean_text(text: str) -> str:
    """Normalize extracted text. Pure function."""
    if not text:
        return ""
    cleaned = text.replace('\r\n', '\n').replace('\r', '\n')
    cleaned = _CONTROL_CHARS.sub('', cleaned)
    cleaned = _HORIZONTAL_WS.sub(' ', cleaned)
    cleaned = _SPACE_AROUND_NEWLINE.sub('\n', cleaned)
    cleaned = _EXCESS_NEWLINES.sub('\n\n', cleaned)
    return cleaned.strip()


def text_statistics(text: str) -> Dict[str, int]:
    """Basic counts over normalized text."""
    if not text:
        return {'characters': 0, 'words': 0, 'lines': 0, 'paragraphs': 0}
    return {
        'characters': len(text),
        'words': len(text.split()),
        'lines': len(text.split('\n')),
        'paragraphs': len([p for p in text.split('\n\n') if p.strip()]),
    }


class TextExtractor:
    """Extract normalized text from PDF resumes."""

    SUPPORTED_FORMATS = {'.pdf'}

    def validate_file(self, file_path: str) -> None:
        """Check the file exists, has a supported extension and a PDF signature.

        Raises:
            FileNotFoundError: If file doesn't exist
            UnsupportedFormatError: Extension or signature mismatch
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Resume file not found: {file_path}")

        self._check_extension(path.name)
        with open(path, 'rb') as f:
            header = f.read(len(PDF_SIGNATURE))
        if header != PDF_SIGNATURE:
            raise UnsupportedFormatError(f"File {path.name} is not a valid PDF (bad signature)")

    def extract(self, file_path: str) -> ExtractedText:
        """Read a PDF from disk and extract normalized text.

        Raises:
            FileNotFoundError: If file doesn't exist
            UnsupportedFormatError: Extension or signature mismatch
            ExtractionFailedError: If pypdf cannot parse the document
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Resume file not found: {file_path}")

        logger.info(f"Extracting text from {file_path}")
        return self.extract_from_bytes(path.read_bytes(), path.name)

    def extract_from_bytes(self, data: bytes, filename: str) -> ExtractedText:
        """Extract normalized text from in-memory PDF bytes."""
        self._check_extension(filename)
        if not data or not data.startswith(PDF_SIGNATURE):
            raise UnsupportedFormatError(f"File {filename} is not a valid PDF (bad signature)")

        try:
            reader = PdfReader(io.BytesIO(data))
            page_count = len(reader.pages)

            pages_text = []
            for i, page in enumerate(reader.pages):
                page_text = page.extract_text()
                if page_text and page_text.strip():
                    pages_text.append(page_text)

            metadata = {}
            if reader.metadata:
                for key in ('title', 'author', 'creator', 'producer'):
                    value = getattr(reader.metadata, key, None)
                    if value:
                        metadata[key] = str(value)
        except (PyPdfError, ValueError, KeyError, TypeError) as e:
            raise ExtractionFailedError(f"Failed to extract text from {filename}: {e}") from e

        text = clean_text('\n\n'.join(pages_text))
        if not text:
            logger.warning(
                f"No text extracted from PDF {filename}. "
                f"The PDF may be scanned images or have text extraction disabled."
            )

        logger.debug(f"Extracted {len(text)} chars from {filename} ({page_count} pages)")
        return ExtractedText(text=text, page_count=page_count, metadata=metadata)

    def _check_extension(self, filename: str) -> None:
        ext = Path(filename).suffix.lower()
        if ext not in self.SUPPORTED_FORMATS:
            supported = ', '.join(sorted(self.SUPPORTED_FORMATS))
            raise UnsupportedFormatError(
                f"Unsupported resume format: {ext or '(none)'}. Supported formats: {supported}"
            )
