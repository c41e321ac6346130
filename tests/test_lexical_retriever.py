"""
Tests for lexical chunk retrieval
"""

from services.document_service.lexical_retriever import LexicalRetriever, normalize


class TestNormalize:
    """Test text normalization"""

    def test_lowercases_and_strips_punctuation(self):
        assert normalize("  Hello, WORLD!  It's 2024.  ") == "hello world it s 2024"

    def test_none_is_empty(self):
        assert normalize(None) == ""


class TestLexicalRetriever:
    """Test ranking"""

    def setup_method(self):
        self.retriever = LexicalRetriever()

    def test_ranks_by_term_frequency(self):
        chunks = [
            "Apples are red.",
            "Bananas are yellow. Bananas are sweet. Bananas grow in bunches.",
            "A banana bread recipe needs bananas.",
        ]

        result = self.retriever.retrieve("bananas", chunks, 3)

        assert result == [chunks[1], chunks[2]]

    def test_repeated_query_terms_count_once(self):
        chunks = ["cats cats", "dogs"]

        assert self.retriever.retrieve("dogs dogs dogs cats", chunks, 2) == ["cats cats", "dogs"]

    def test_whole_query_bonus(self):
        chunks = [
            "notice notice notice period",
            "The notice period is thirty days.",
        ]

        result = self.retriever.retrieve("notice period", chunks, 1)

        # 2 term hits + 5 bonus beats 4 term hits
        assert result == [chunks[1]]

    def test_ties_keep_document_order(self):
        chunks = ["alpha one", "alpha two", "alpha three"]

        assert self.retriever.retrieve("alpha", chunks, 2) == ["alpha one", "alpha two"]

    def test_no_match_falls_back_to_leading_chunks(self):
        chunks = ["first", "second", "third"]

        assert self.retriever.retrieve("unrelated", chunks, 2) == ["first", "second"]
        assert self.retriever.retrieve(None, chunks, 2) == ["first", "second"]

    def test_punctuation_only_chunks_never_score(self):
        chunks = ["...", "real content"]

        assert self.retriever.retrieve("content", chunks, 4) == ["real content"]

    def test_empty_inputs(self):
        assert self.retriever.retrieve("query", [], 4) == []
        assert self.retriever.retrieve("query", ["chunk"], 0) == []
        assert self.retriever.retrieve("query", ["chunk"], -1) == []
