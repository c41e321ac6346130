"""
Document service - fetches documents and builds bounded prompt context from them.
"""

from .artifact_cache import (
    ArtifactCache,
    FileSystemArtifactCache,
    InMemoryArtifactCache,
    NoopArtifactCache,
    cache_key,
    canonicalize_url,
    create_artifact_cache,
)
from .context_builder import DocumentContextBuilder, get_document_context_builder
from .document_fetcher import DocumentFetcher, HttpDocumentFetcher
from .lexical_retriever import LexicalRetriever
from .models import DocumentArtifacts, FetchedDocument
from .text_extractor import TextExtractor

__all__ = [
    "ArtifactCache",
    "FileSystemArtifactCache",
    "InMemoryArtifactCache",
    "NoopArtifactCache",
    "cache_key",
    "canonicalize_url",
    "create_artifact_cache",
    "DocumentContextBuilder",
    "get_document_context_builder",
    "DocumentFetcher",
    "HttpDocumentFetcher",
    "LexicalRetriever",
    "DocumentArtifacts",
    "FetchedDocument",
    "TextExtractor",
]
