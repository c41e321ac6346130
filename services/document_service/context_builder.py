"""
Document context builder - turns a document URL and a question into a compact,
numbered set of relevant snippets for the prompt.

Pipeline: artifact cache -> fetch -> extract -> chunk -> cache -> retrieve -> budget.
"""

import re
from typing import List, Optional

from services.document_service.artifact_cache import ArtifactCache, create_artifact_cache
from services.document_service.document_fetcher import DocumentFetcher, HttpDocumentFetcher
from services.document_service.lexical_retriever import LexicalRetriever
from services.document_service.models import DocumentArtifacts
from services.document_service.text_extractor import TextExtractor
from utils.logging_config import get_logger, log_execution_time


SENTENCE_BOUNDARIES = ".!?\n"

DOCUMENT_QUESTION_KEYWORDS = (
    "document",
    "file",
    "summary",
    "summarize",
    "what does",
    "according to",
    "in this",
    "cv",
    "resume",
)

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


class DocumentContextBuilder:
    """Builds bounded document context for a question"""

    def __init__(
        self,
        artifact_cache: Optional[ArtifactCache] = None,
        fetcher: Optional[DocumentFetcher] = None,
        extractor: Optional[TextExtractor] = None,
        retriever: Optional[LexicalRetriever] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        retrieval_limit: Optional[int] = None,
        context_char_budget: Optional[int] = None
    ):
        from config.app_config import get_config
        documents = get_config().documents

        self.logger = get_logger(__name__)
        self.artifact_cache = artifact_cache if artifact_cache is not None else create_artifact_cache()
        self.fetcher = fetcher if fetcher is not None else HttpDocumentFetcher()
        self.extractor = extractor if extractor is not None else TextExtractor()
        self.retriever = retriever if retriever is not None else LexicalRetriever()
        self.chunk_size = chunk_size or documents.chunk_size
        self.chunk_overlap = documents.chunk_overlap if chunk_overlap is None else chunk_overlap
        self.retrieval_limit = retrieval_limit or documents.retrieval_limit
        self.context_char_budget = context_char_budget or documents.context_char_budget

    def build_context(self, source_url: Optional[str], question: Optional[str]) -> Optional[str]:
        """
        Build prompt context for a question about a document

        Args:
            source_url: Document URL
            question: User question used to rank chunks

        Returns:
            Numbered snippets within the character budget, or None when the
            document is unavailable or empty
        """
        if source_url is None or not source_url.strip():
            return None

        try:
            chunks = self._get_or_build_chunks(source_url)
            if not chunks:
                return None
            relevant = self.retriever.retrieve(question, chunks, self.retrieval_limit)
            context = self.build_bounded_context(relevant)
            return context or None
        except Exception as e:
            # Document grounding is best effort; the chat turn continues without it
            self.logger.warning(f"Document context unavailable for {source_url}: {e}")
            return None

    def _get_or_build_chunks(self, source_url: str) -> List[str]:
        cached = self.artifact_cache.load(source_url)
        if cached is not None and cached.chunks:
            self.logger.debug(f"Document cache hit for {source_url}")
            return cached.chunks

        with log_execution_time(self.logger, "document ingestion", source_url=source_url):
            fetched = self.fetcher.fetch(source_url)
            text = self.extractor.extract(fetched)
            chunks = self.split_text(text)

        if chunks:
            self.artifact_cache.save(source_url, DocumentArtifacts(chunks=chunks))
        return chunks

    def split_text(self, text: Optional[str]) -> List[str]:
        """
        Split text into overlapping chunks, preferring sentence or line ends

        Args:
            text: Extracted document text

        Returns:
            Non-empty trimmed chunks in document order
        """
        if text is None:
            return []
        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        normalized = _EXCESS_NEWLINES.sub("\n\n", normalized).strip()
        if not normalized:
            return []

        chunks = []
        length = len(normalized)
        start = 0
        while start < length:
            end = min(length, start + self.chunk_size)
            cut = end
            if end < length:
                boundary = self._find_boundary(normalized, start, end)
                if boundary > start + self.chunk_size // 2:
                    cut = boundary

            chunk = normalized[start:cut].strip()
            if chunk:
                chunks.append(chunk)

            if cut >= length:
                break
            # A snapped cut with a large overlap could step back past start
            start = max(start + 1, cut - self.chunk_overlap)

        return chunks

    def build_bounded_context(self, chunks: Optional[List[str]]) -> str:
        """
        Render chunks as ``[k] text`` entries without exceeding the character budget.
        The entry that overflows is cut so the output fills the budget exactly.
        """
        if not chunks:
            return ""

        parts = []
        used = 0
        index = 1
        for chunk in chunks:
            clean = (chunk or "").strip()
            if not clean:
                continue
            entry = f"[{index}] {clean}\n\n"
            if used + len(entry) > self.context_char_budget:
                parts.append(entry[:self.context_char_budget - used])
                break
            parts.append(entry)
            used += len(entry)
            index += 1

        return "".join(parts).strip()

    @staticmethod
    def _find_boundary(text: str, start: int, end: int) -> int:
        """Position just after the last sentence or line end in text[start:end], else end"""
        for i in range(end, start, -1):
            if text[i - 1] in SENTENCE_BOUNDARIES:
                return i
        return end

    @staticmethod
    def is_likely_document_question(text: Optional[str]) -> bool:
        """Keyword heuristic for questions about an attached document"""
        if text is None or not text.strip():
            return False
        lower = text.lower()
        return any(keyword in lower for keyword in DOCUMENT_QUESTION_KEYWORDS)


# Global document context builder instance
_document_context_builder: Optional[DocumentContextBuilder] = None


def get_document_context_builder() -> DocumentContextBuilder:
    """Get the global document context builder instance"""
    global _document_context_builder
    if _document_context_builder is None:
        _document_context_builder = DocumentContextBuilder()
    return _document_context_builder
