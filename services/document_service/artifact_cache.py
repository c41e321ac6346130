"""
Artifact cache - stores chunked documents keyed by their canonical source URL,
so re-signed links to the same object reuse one entry.
"""

from abc import ABC, abstractmethod
import hashlib
import json
from pathlib import Path
import threading
from typing import Dict, Optional
from urllib.parse import urlsplit

from services.document_service.models import DocumentArtifacts
from utils.logging_config import get_logger


TRANSIENT_QUERY_PARAMS = {"token", "signature", "expires"}
CACHE_PREFIX = "doc_cache"


def canonicalize_url(source_url: Optional[str]) -> str:
    """
    Normalize a URL for cache addressing

    Lower-cases scheme and host, drops fragments and transient signing
    parameters, and keeps the remaining query parameters in order.

    Args:
        source_url: URL as received

    Returns:
        Canonical URL, or the trimmed input if it cannot be parsed
    """
    if source_url is None:
        return ""
    trimmed = source_url.strip()
    if not trimmed:
        return ""
    try:
        parts = urlsplit(trimmed)
        scheme = (parts.scheme or "https").lower()
        host = (parts.hostname or "").lower()
        if parts.port is not None:
            host = f"{host}:{parts.port}"
    except ValueError:
        return trimmed

    base = f"{scheme}://{host}{parts.path}"
    kept = [
        pair for pair in parts.query.split("&")
        if pair and pair.split("=", 1)[0].lower() not in TRANSIENT_QUERY_PARAMS
    ]
    if not kept:
        return base
    return f"{base}?{'&'.join(kept)}"


def cache_key(source_url: Optional[str]) -> str:
    """SHA-256 hex digest of the canonical URL"""
    return hashlib.sha256(canonicalize_url(source_url).encode("utf-8")).hexdigest()


class ArtifactCache(ABC):
    """Cache of document chunk lists. Empty chunk lists are never stored."""

    @abstractmethod
    def load(self, source_url: str) -> Optional[DocumentArtifacts]:
        """Cached artifacts for the URL, or None"""

    @abstractmethod
    def save(self, source_url: str, artifacts: DocumentArtifacts) -> None:
        """Store artifacts for the URL"""


class NoopArtifactCache(ArtifactCache):
    """Fallback cache that stores nothing"""

    def load(self, source_url: str) -> Optional[DocumentArtifacts]:
        return None

    def save(self, source_url: str, artifacts: DocumentArtifacts) -> None:
        pass


class InMemoryArtifactCache(ArtifactCache):
    """Process-local cache"""

    def __init__(self):
        self._entries: Dict[str, DocumentArtifacts] = {}
        self._lock = threading.Lock()

    def load(self, source_url: str) -> Optional[DocumentArtifacts]:
        with self._lock:
            cached = self._entries.get(cache_key(source_url))
        if cached is None:
            return None
        return DocumentArtifacts(list(cached.chunks))

    def save(self, source_url: str, artifacts: DocumentArtifacts) -> None:
        if artifacts is None or not artifacts.chunks:
            return
        with self._lock:
            self._entries[cache_key(source_url)] = DocumentArtifacts(list(artifacts.chunks))


class FileSystemArtifactCache(ArtifactCache):
    """
    JSON files under ``<directory>/doc_cache/<namespace>/<sha256>/chunks.json``.

    Cache failures are logged and never break the chat flow.
    """

    def __init__(self, directory: str, namespace: str = "global"):
        self.logger = get_logger(__name__)
        self.directory = Path(directory)
        self.namespace = namespace if namespace and namespace.strip() else "global"

    def path_for(self, source_url: str) -> Path:
        return self.directory / CACHE_PREFIX / self.namespace / cache_key(source_url) / "chunks.json"

    def load(self, source_url: str) -> Optional[DocumentArtifacts]:
        path = self.path_for(source_url)
        if not path.exists():
            return None
        try:
            chunks = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Unreadable document cache entry {path}: {e}")
            return None
        if not isinstance(chunks, list):
            self.logger.warning(f"Ignoring malformed document cache entry {path}")
            return None
        return DocumentArtifacts([str(chunk) for chunk in chunks])

    def save(self, source_url: str, artifacts: DocumentArtifacts) -> None:
        if artifacts is None or not artifacts.chunks:
            return
        path = self.path_for(source_url)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(artifacts.chunks, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            self.logger.warning(f"Failed to write document cache entry {path}: {e}")


def create_artifact_cache(config=None) -> ArtifactCache:
    """Build the artifact cache selected by configuration"""
    if config is None:
        from config.app_config import get_config
        config = get_config()

    backend = config.documents.cache_backend.lower()
    if backend == "filesystem":
        return FileSystemArtifactCache(config.documents.cache_directory, config.documents.cache_namespace)
    elif backend == "memory":
        return InMemoryArtifactCache()
    elif backend == "none":
        return NoopArtifactCache()

    raise ValueError(f"Unsupported document cache backend: {config.documents.cache_backend}")
