"""
Text extractor - converts fetched document bytes to plain text.
"""

import io

import docx
from PyPDF2 import PdfReader

from services.chat_service.exceptions import ExtractionError
from services.document_service.models import FetchedDocument
from utils.logging_config import get_logger


WORD_EXTENSIONS = (".docx", ".docm")


class TextExtractor:
    """
    Picks a decoder from the content type or the URL extension:
    PDF, Word XML package, otherwise UTF-8 text.
    """

    def __init__(self):
        self.logger = get_logger(__name__)

    def extract(self, document: FetchedDocument) -> str:
        """
        Extract plain text from a fetched document

        Args:
            document: Downloaded bytes with their content type

        Returns:
            Extracted text ("" for an empty document)

        Raises:
            ExtractionError: If a PDF or Word file cannot be parsed
        """
        if document is None or not document.content:
            return ""

        source_url = (document.source_url or "").lower().split("?", 1)[0]
        content_type = (document.content_type or "").lower()

        if "pdf" in content_type or source_url.endswith(".pdf"):
            return self._extract_pdf(document.content)

        if "wordprocessingml" in content_type or source_url.endswith(WORD_EXTENSIONS):
            return self._extract_docx(document.content)

        return document.content.decode("utf-8", errors="replace")

    def _extract_pdf(self, content: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(content))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            self.logger.error(f"PDF extraction failed: {e}")
            raise ExtractionError(f"PDF extraction failed: {e}") from e
        return "\n".join(pages)

    def _extract_docx(self, content: bytes) -> str:
        try:
            document = docx.Document(io.BytesIO(content))
        except Exception as e:
            self.logger.error(f"DOCX extraction failed: {e}")
            raise ExtractionError(f"DOCX extraction failed: {e}") from e
        return "\n".join(paragraph.text for paragraph in document.paragraphs)
