"""
Document service data models.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class FetchedDocument:
    """Raw bytes and metadata downloaded from a source URL"""
    source_url: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class DocumentArtifacts:
    """Precomputed chunks derived from a source document"""
    chunks: List[str] = field(default_factory=list)
