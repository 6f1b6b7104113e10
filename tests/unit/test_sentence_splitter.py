"""Unit tests for SentenceSplitter and build_chunks end to end."""

from __future__ import annotations

import re

import pytest

from docset_indexer.services.splitting import SentenceSplitter, build_chunks
from docset_indexer.utils.errors import ConfigurationError

_SHORT_SENTENCES = [
    "USA v. 4227 JENIFER STREET N.W. WASHINGTON, D.C., AND ELECTRONIC DEVICES "
    "THEREIN UNDER RULE 41",
    "JPMorgan Chase & Co. elected Mark Weinberger as a director, effective January 16, "
    "2024, and the Board of Directors appointed him as a member of the Audit Committee.",
    "Mr. Weinberger was Global Chairman and Chief Executive Officer of Ernst & Young "
    "from 2013 to 2019.",
    "He was also elected a director of JPMorgan Chase Bank, N.A. and a manager of "
    "JPMorgan Chase Holdings LLC, and may be elected a director of such other "
    "subsidiary or subsidiaries as may be determined from time to time.",
]

_PROSE = (
    "The quick brown fox jumps over the lazy dog. It was not amused, i.e. it barked.\n\n\n"
    "Dr. Smith arrived at 10 a.m. and left; nobody noticed. Why? Because, frankly, "
    "the meeting was long!  A second paragraph follows with more words, commas, and "
    "semicolons; plus a very long run of words without any punctuation at all that "
    "keeps going and going until the budget has to cut it somewhere"
)


def _squash(text: str) -> str:
    return "".join(text.split())


class TestAbbreviationAwareChunking:
    def test_no_glued_abbreviations(self, word_tokenizer, jpmorgan_text) -> None:
        chunks = build_chunks(jpmorgan_text, 50, 10, tokenizer=word_tokenizer)

        assert chunks
        assert not any("Co.elected" in c for c in chunks)
        assert not any("Mr.Weinberger" in c for c in chunks)
        assert not any("A.and" in c for c in chunks)

    def test_no_chunk_ends_on_a_title(self, word_tokenizer, jpmorgan_text) -> None:
        chunks = build_chunks(jpmorgan_text, 50, 10, tokenizer=word_tokenizer)
        assert not any(re.search(r"Mr\.$", c) for c in chunks)

    def test_sentences_become_chunks(self, word_tokenizer, jpmorgan_text) -> None:
        chunks = build_chunks(jpmorgan_text, 50, 10, tokenizer=word_tokenizer)
        assert chunks == _SHORT_SENTENCES[1:]

    @pytest.mark.parametrize("sentence", _SHORT_SENTENCES)
    def test_short_sentence_is_a_single_chunk(self, word_tokenizer, sentence: str) -> None:
        assert build_chunks(sentence, 50, 10, tokenizer=word_tokenizer) == [sentence]


class TestChunkingInvariants:
    @pytest.mark.parametrize("chunk_size", [3, 5, 8, 20, 200])
    def test_no_characters_lost_without_overlap(self, word_tokenizer, chunk_size: int) -> None:
        chunks = build_chunks(_PROSE, chunk_size, 0, tokenizer=word_tokenizer)
        assert _squash("".join(chunks)) == _squash(_PROSE)

    @pytest.mark.parametrize("chunk_size,chunk_overlap", [(8, 2), (12, 4), (20, 10)])
    def test_chunks_respect_budget(
        self, word_tokenizer, chunk_size: int, chunk_overlap: int
    ) -> None:
        splitter = SentenceSplitter(word_tokenizer, chunk_size, chunk_overlap)
        for chunk in splitter.split_chunks(_PROSE):
            # An overlap seed plus one sentence may run over.
            assert chunk.token_count <= chunk_size + chunk_overlap
            if not chunk.is_sentence_aligned:
                assert word_tokenizer.count(chunk.text) <= chunk_size + chunk_overlap

    def test_chunks_are_trimmed_and_non_empty(self, word_tokenizer) -> None:
        for chunk in build_chunks(_PROSE, 10, 3, tokenizer=word_tokenizer):
            assert chunk == chunk.strip()
            assert chunk

    def test_empty_text(self, word_tokenizer) -> None:
        assert build_chunks("", 10, 2, tokenizer=word_tokenizer) == []

    def test_indivisible_token_over_budget_raises(self, word_tokenizer) -> None:
        class _Wide(type(word_tokenizer)):
            def encode(self, text: str) -> list[int]:
                return [0] * (2 * len(text))

        with pytest.raises(ConfigurationError, match="Single token exceeded chunk size"):
            build_chunks("xy", 1, 0, tokenizer=_Wide())


class TestSentenceSplitterConfiguration:
    def test_overlap_larger_than_size_raises(self, word_tokenizer) -> None:
        with pytest.raises(ConfigurationError, match="larger than chunk size"):
            SentenceSplitter(word_tokenizer, chunk_size=10, chunk_overlap=11)

    def test_metadata_larger_than_chunk_raises_when_counted(self, word_tokenizer) -> None:
        splitter = SentenceSplitter(
            word_tokenizer, chunk_size=10, chunk_overlap=0, include_metadata_in_chunk_size=True
        )
        metadata = "a b c d e f g h i j k"
        with pytest.raises(ConfigurationError, match="Metadata length"):
            splitter.split_text_metadata_aware("Some text.", metadata)

    def test_metadata_ignored_by_default(self, word_tokenizer) -> None:
        splitter = SentenceSplitter(word_tokenizer, chunk_size=10, chunk_overlap=0)
        chunks = splitter.split_text_metadata_aware("Some text.", "a b c d e f g h i j k")
        assert [c.text for c in chunks] == ["Some text."]

    def test_metadata_shrinks_effective_budget(self, word_tokenizer) -> None:
        splitter = SentenceSplitter(
            word_tokenizer, chunk_size=8, chunk_overlap=0, include_metadata_in_chunk_size=True
        )
        chunks = splitter.split_text_metadata_aware("One two. Three four.", "k v k v")
        assert [c.text for c in chunks] == ["One two.", "Three four."]
