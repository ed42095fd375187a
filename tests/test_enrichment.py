from koreader_highlights.config import SyncConfig
from koreader_highlights.enrichment import (
    enrich_book,
    enrich_highlight,
    extract_from_note,
    normalize_color,
    tags_for_color,
)
from koreader_highlights.models import Book, Highlight


def tagging(color_map=None, apply_color_tags=True):
    config = SyncConfig(apply_color_tags=apply_color_tags)
    if color_map is not None:
        config.color_map = color_map
    return config.tagging


def test_extract_from_note_deduplicates_tags_and_strips_link_aliases():
    extracted = extract_from_note("Good insight #idea #idea, see [[Chapter 2|ch2]]")

    assert extracted.tags == ("idea",)
    assert extracted.links == ("Chapter 2",)


def test_extract_from_note_is_case_sensitive_and_unicode_aware():
    extracted = extract_from_note("#Idea then #idea and #café-au_lait!")

    assert extracted.tags == ("Idea", "idea", "café-au_lait")


def test_extract_from_note_requires_whitespace_before_hash():
    extracted = extract_from_note("mail me at me#home or see issue#12")

    assert extracted.tags == ()


def test_extract_from_note_trims_and_deduplicates_links():
    extracted = extract_from_note("[[ Dune ]] and [[Dune|the book]] plus [[Arrakis]]")

    assert extracted.links == ("Dune", "Arrakis")


def test_extract_from_note_handles_missing_or_blank_notes():
    assert extract_from_note(None).tags == ()
    assert extract_from_note("   \n ").links == ()


def test_normalize_color():
    assert normalize_color(None) is None
    assert normalize_color("") is None
    assert normalize_color(" Yellow ") == "yellow"


def test_tags_for_color_trims_and_lowercases_first():
    assert tags_for_color(normalize_color("Yellow "), tagging({"yellow": ["hl/insight"]})) == ["hl/insight"]


def test_tags_for_color_retries_without_whitespace():
    assert tags_for_color("light blue", tagging({"lightblue": ["hl/ref"]})) == ["hl/ref"]


def test_tags_for_color_deduplicates_without_sorting():
    assert tags_for_color("red", tagging({"red": ["zeta", "alpha", "zeta"]})) == ["zeta", "alpha"]


def test_tags_for_color_unknown_colour_is_empty():
    assert tags_for_color("purple", tagging()) == []
    assert tags_for_color(None, tagging()) == []


def test_enrich_highlight_sets_derived_fields():
    highlight = Highlight(text="x", note="About #focus and [[Deep Work]]", color=" Yellow")

    enriched = enrich_highlight(highlight, tagging())

    assert enriched.normalized_color == "yellow"
    assert enriched.color_tags == ("hl/insight",)
    assert enriched.note_tags == ("focus",)
    assert enriched.note_links == ("Deep Work",)
    assert enriched.color == " Yellow"


def test_enrich_highlight_respects_apply_color_tags_flag():
    enriched = enrich_highlight(Highlight(text="x", color="yellow"), tagging(apply_color_tags=False))

    assert enriched.normalized_color == "yellow"
    assert enriched.color_tags == ()


def test_enrich_book_is_deterministic_and_total():
    book = Book(
        title="T",
        author="A",
        highlights=[Highlight(text=""), Highlight(text="y", note="", color=""), Highlight(text="z", color="blue")],
    )

    first = enrich_book(book, tagging())
    second = enrich_book(book, tagging())

    assert first == second
    assert [h.color_tags for h in first.highlights] == [(), (), ("hl/reference",)]
    assert book.highlights[2].color_tags == ()
