"""Unit tests for abbreviation-aware sentence boundary detection."""

from __future__ import annotations

import pytest

from docset_indexer.services.splitting.sentence_tokenizer import split_sentences


class TestBoundaries:
    def test_splits_on_terminal_punctuation(self) -> None:
        assert split_sentences("Hello world. How are you? Fine!") == [
            "Hello world. ",
            "How are you? ",
            "Fine!",
        ]

    def test_empty_text_yields_nothing(self) -> None:
        assert split_sentences("") == []

    def test_text_without_boundary_is_one_sentence(self) -> None:
        assert split_sentences("no punctuation here") == ["no punctuation here"]

    @pytest.mark.parametrize(
        "text",
        [
            "  Leading. Trailing.  ",
            "One.  Two.\n\nThree",
            "Chase & Co. elected Mr. Weinberger. He said \"yes.\" Then left.",
        ],
    )
    def test_join_returns_original_text(self, text: str) -> None:
        assert "".join(split_sentences(text)) == text


class TestAbbreviations:
    def test_default_abbreviation_is_not_a_boundary(self) -> None:
        assert split_sentences("Mr. Smith went home. He slept.") == [
            "Mr. Smith went home. ",
            "He slept.",
        ]

    def test_without_abbreviations_title_ends_a_sentence(self) -> None:
        assert split_sentences("Mr. Smith went home.", abbreviations=()) == [
            "Mr. ",
            "Smith went home.",
        ]

    def test_abbreviations_match_case_insensitively(self) -> None:
        assert split_sentences("Reply a.s.a.p. please.") == ["Reply a.s.a.p. please."]

    def test_multi_period_abbreviation(self) -> None:
        assert split_sentences("Use tools, i.e. hammers. Then stop.") == [
            "Use tools, i.e. hammers. ",
            "Then stop.",
        ]

    def test_dotted_initialisms_are_not_boundaries(self) -> None:
        text = "He joined JPMorgan Chase Bank, N.A. and a subsidiary."
        assert split_sentences(text) == [text]

    def test_custom_abbreviation(self) -> None:
        assert split_sentences("See fig. 3 for details.", abbreviations=("fig.",)) == [
            "See fig. 3 for details."
        ]
