"""
Document fetcher - downloads raw document bytes over HTTP(S).
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from services.chat_service.exceptions import TransientFetchError
from services.document_service.models import FetchedDocument
from utils.logging_config import get_logger


class DocumentFetcher(ABC):
    """Retrieves raw bytes for a source URL"""

    @abstractmethod
    def fetch(self, source_url: str) -> FetchedDocument:
        """Download the document; raises TransientFetchError on failure"""


class HttpDocumentFetcher(DocumentFetcher):
    """
    Fetches public documents with httpx, following redirects.
    No retries: a failed download simply means no grounding for this turn.
    """

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None,
                 client: Optional[httpx.Client] = None):
        self.logger = get_logger(__name__)
        if timeout is None or user_agent is None:
            from config.app_config import get_config
            documents = get_config().documents
            timeout = documents.fetch_timeout_seconds if timeout is None else timeout
            user_agent = documents.user_agent if user_agent is None else user_agent
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    def fetch(self, source_url: str) -> FetchedDocument:
        try:
            if self._client is not None:
                response = self._client.get(
                    source_url,
                    headers={"User-Agent": self.user_agent},
                    follow_redirects=True
                )
            else:
                response = httpx.get(
                    source_url,
                    headers={"User-Agent": self.user_agent},
                    follow_redirects=True,
                    timeout=self.timeout
                )
        except httpx.HTTPError as e:
            self.logger.warning(f"Unable to download document {source_url}: {e}")
            raise TransientFetchError(f"Unable to download document: {e}") from e

        if not response.is_success:
            raise TransientFetchError(f"Unable to download document: HTTP {response.status_code}")

        return FetchedDocument(
            source_url=source_url,
            content=response.content,
            content_type=_strip_parameters(response.headers.get("content-type"))
        )


def _strip_parameters(content_type: Optional[str]) -> Optional[str]:
    """'text/plain; charset=utf-8' -> 'text/plain'"""
    if content_type is None:
        return None
    return content_type.split(";", 1)[0].strip()
