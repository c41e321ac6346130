"""
Tests for document text extraction
"""

import io

import docx
import pytest

from services.chat_service.exceptions import ExtractionError
from services.document_service.models import FetchedDocument
from services.document_service.text_extractor import TextExtractor


DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def build_docx(*paragraphs):
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class TestTextExtractor:
    """Test extractor dispatch"""

    def setup_method(self):
        self.extractor = TextExtractor()

    def test_plain_text_is_decoded_as_utf8(self):
        document = FetchedDocument("https://host/notes.txt", "Café menu".encode("utf-8"), "text/plain")

        assert self.extractor.extract(document) == "Café menu"

    def test_invalid_utf8_is_replaced(self):
        document = FetchedDocument("https://host/notes.txt", b"ok \xff end", None)

        assert self.extractor.extract(document) == "ok � end"

    def test_empty_content(self):
        assert self.extractor.extract(FetchedDocument("https://host/a.pdf", b"", "application/pdf")) == ""

    def test_docx_by_content_type(self):
        content = build_docx("First paragraph", "Second paragraph")
        document = FetchedDocument("https://host/download?id=7", content, DOCX_TYPE)

        assert self.extractor.extract(document) == "First paragraph\nSecond paragraph"

    def test_docx_by_extension(self):
        content = build_docx("Only paragraph")
        document = FetchedDocument("https://host/CV.DOCX?sig=abc", content, "application/octet-stream")

        assert self.extractor.extract(document) == "Only paragraph"

    def test_corrupt_docx_raises(self):
        document = FetchedDocument("https://host/cv.docx", b"definitely not a zip", None)

        with pytest.raises(ExtractionError):
            self.extractor.extract(document)

    def test_corrupt_pdf_raises(self):
        document = FetchedDocument("https://host/report", b"not a pdf at all", "application/pdf")

        with pytest.raises(ExtractionError):
            self.extractor.extract(document)
