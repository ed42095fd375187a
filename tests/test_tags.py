from koreader_highlights.models import Book, Highlight
from koreader_highlights.tags import BASE_TAGS, book_tags, merge_tags


def test_merge_tags_sorts_and_deduplicates_case_insensitively():
    merged = merge_tags(["reading", "highlights"], ["Idea", "idea", "hl/x", "", "reading"])

    assert merged == ["highlights", "hl/x", "Idea", "reading"]


def test_book_tags_collects_note_and_colour_tags():
    book = Book(
        highlights=[
            Highlight(text="a", note_tags=("zen",), color_tags=("hl/quote", "hl/insight")),
            Highlight(text="b", note_tags=("art",)),
        ]
    )

    tags = book_tags(book)

    assert tags == sorted(tags, key=str.casefold)
    assert set(BASE_TAGS) <= set(tags)
    assert tags == ["art", "highlights", "hl/insight", "hl/quote", "reading", "zen"]
    # per-highlight colour tags keep their configured order
    assert book.highlights[0].color_tags == ("hl/quote", "hl/insight")


def test_book_tags_for_empty_book_is_the_base_set():
    assert book_tags(Book()) == ["highlights", "reading"]
