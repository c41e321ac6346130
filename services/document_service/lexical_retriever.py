"""
Lexical retriever - ranks text chunks by query term overlap.
"""

import re
from collections import Counter
from typing import List, Optional


WHOLE_QUERY_BONUS = 5

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(value: Optional[str]) -> str:
    """Lowercase, replace non-alphanumerics with spaces, collapse whitespace"""
    if value is None:
        return ""
    lowered = _NON_ALPHANUMERIC.sub(" ", value.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


class LexicalRetriever:
    """Term-frequency scoring with a bonus for chunks containing the whole query"""

    def retrieve(self, query: Optional[str], chunks: List[str], limit: int) -> List[str]:
        """
        Return the ``limit`` best chunks for the query

        Args:
            query: User question
            chunks: Candidate chunks in document order
            limit: Maximum number of chunks to return

        Returns:
            Chunks by descending score; the first ``limit`` chunks when nothing matches
        """
        if not chunks or limit <= 0:
            return []

        normalized_query = normalize(query)
        terms = set(normalized_query.split())

        scored = []
        for chunk in chunks:
            normalized_chunk = normalize(chunk)
            if not normalized_chunk:
                continue
            score = self.score(terms, normalized_query, normalized_chunk)
            if score > 0:
                scored.append((chunk, score))

        if not scored:
            return list(chunks[:limit])

        # sorted() is stable, so ties keep document order
        scored = sorted(scored, key=lambda item: -item[1])
        return [chunk for chunk, _ in scored[:limit]]

    def score(self, terms: set, normalized_query: str, normalized_chunk: str) -> int:
        frequencies = Counter(normalized_chunk.split())
        score = sum(frequencies[term] for term in terms if term)
        if normalized_query and normalized_query in normalized_chunk:
            score += WHOLE_QUERY_BONUS
        return score
