"""
Tests for page role classification and page number extraction.
"""

import pytest


class TestPageNumberExtraction:
    """Tests for extract_page_number."""

    def test_footer_bare_number(self):
        from recon.classifier import extract_page_number

        text = "Results\nThe measurements agree with theory.\n\n12"
        assert extract_page_number(text) == 12

    def test_page_label(self):
        from recon.classifier import extract_page_number

        assert extract_page_number("Some body text\nmore text\nPage 7") == 7
        assert extract_page_number("Body\nPage 3 of 10") == 3

    def test_p_dot_and_n_of_m(self):
        from recon.classifier import extract_page_number

        assert extract_page_number("Body text here\np. 14") == 14
        assert extract_page_number("Body text here\n5 / 20") == 5

    def test_roman_numeral(self):
        from recon.classifier import extract_page_number

        assert extract_page_number("Preface\nWe thank our readers.\nxiv") == 14

    def test_wrapped_number(self):
        from recon.classifier import extract_page_number

        assert extract_page_number("Body text\n- 9 -") == 9
        assert extract_page_number("Body text\n[21]") == 21

    def test_header_number(self):
        from recon.classifier import extract_page_number

        text = "Page 4\nRunning title\nFirst paragraph.\nSecond paragraph.\nThird paragraph."
        assert extract_page_number(text) == 4

    def test_numbers_in_prose_ignored(self):
        from recon.classifier import extract_page_number

        text = "In 1998 we measured 42 samples.\nOf those, 17 failed."
        assert extract_page_number(text) is None

    def test_out_of_range_rejected(self):
        from recon.classifier import extract_page_number

        assert extract_page_number("Body\n0") is None
        assert extract_page_number("") is None

    def test_roman_to_int(self):
        from recon.classifier import roman_to_int

        assert roman_to_int("iv") == 4
        assert roman_to_int("MCMXCIV") == 1994
        assert roman_to_int("iiii") is None
        assert roman_to_int("") is None


class TestStructureClassifier:
    """Tests for StructureClassifier."""

    @pytest.fixture
    def classifier(self):
        from recon.classifier import StructureClassifier
        return StructureClassifier()

    def test_roles(self, classifier):
        from recon.classifier import PageRole

        assert classifier.classify_role("Table of Contents\n1 Intro ... 3") == PageRole.TOC
        assert classifier.classify_role("Abstract\nWe study pages.") == PageRole.ABSTRACT
        assert classifier.classify_role("1. Introduction\nPages get shuffled.") == PageRole.INTRODUCTION
        assert classifier.classify_role("Chapter 2\nMethods") == PageRole.CHAPTER
        assert classifier.classify_role("References\n[1] A. Author") == PageRole.REFERENCES
        assert classifier.classify_role("Appendix A\nExtra tables") == PageRole.APPENDIX
        assert classifier.classify_role("A Thesis\nsubmitted to the faculty") == PageRole.TITLE

    def test_first_rule_wins(self, classifier):
        from recon.classifier import PageRole

        # Contents listing mentions references and appendix on their own lines
        text = "Contents\nIntroduction\nReferences\nAppendix"
        assert classifier.classify_role(text) == PageRole.TOC

    def test_passing_mention_not_a_role(self, classifier):
        from recon.classifier import PageRole

        text = "As shown in the introduction, the method works."
        assert classifier.classify_role(text) == PageRole.UNKNOWN

    def test_long_text_is_content(self, classifier):
        from recon.classifier import PageRole

        text = " ".join(["word"] * 60)
        assert classifier.classify_role(text) == PageRole.CONTENT

    def test_classify_is_deterministic(self, classifier):
        from recon.corpus import PageCorpus

        corpus = PageCorpus.from_texts(["Abstract\nShort.\n2", "Abstract\nShort.\n2"])
        first, second = classifier.classify_corpus(corpus)
        assert (first.role, first.explicit_number) == (second.role, second.explicit_number)
        assert first.explicit_number == 2

    def test_preset_number_kept(self, classifier):
        from recon.corpus import Page

        result = classifier.classify(Page(index=0, text="no number here", explicit_number=8))
        assert result.explicit_number == 8
        assert result.to_dict()["role"] == "unknown"

    def test_word_count_fallback_is_not_a_keyword_role(self, classifier):
        from recon.corpus import Page
        from recon.classifier import PageRole

        prose = classifier.classify(Page(index=0, text=" ".join(["word"] * 60)))
        chapter = classifier.classify(Page(index=1, text="Chapter 1\nshort"))

        assert prose.role == PageRole.CONTENT
        assert not prose.is_classified
        assert chapter.is_classified
