from __future__ import annotations

from tocmap.outline import (
    ancestor_paths,
    build_toc_markdown,
    compute_paths,
    escape_markdown_text,
    headings_from_raw,
    join_path,
    outline_hash,
)
from tocmap.protocols import RawHeading


def _raw(*entries):
    return [RawHeading(f"h{i}", level, text) for i, (level, text) in enumerate(entries)]


def test_same_leaf_text_under_different_parents_gets_distinct_paths() -> None:
    headings = headings_from_raw(_raw((1, "Intro"), (2, "Background"), (1, "Conclusion"), (2, "Background")))

    assert [h.path for h in headings] == ["Intro", "Intro\nBackground", "Conclusion", "Conclusion\nBackground"]


def test_level_jump_nests_without_inventing_a_segment() -> None:
    paths = compute_paths([(1, "Overview"), (3, "Details"), (3, "More")])

    assert paths == ["Overview", "Overview\nDetails", "Overview\nMore"]


def test_shallower_heading_after_jump_pops_back() -> None:
    paths = compute_paths([(1, "A"), (3, "B"), (2, "C"), (3, "D"), (1, "E")])

    assert paths == ["A", "A\nB", "A\nC", "A\nC\nD", "E"]


def test_document_starting_below_level_one() -> None:
    assert compute_paths([(2, "Sub"), (3, "Deeper"), (2, "Next")]) == ["Sub", "Sub\nDeeper", "Next"]


def test_empty_headings_are_skipped_and_indices_stay_dense() -> None:
    headings = headings_from_raw(_raw((1, "A"), (2, "   "), (2, " B ")))

    assert [(h.index, h.text, h.path) for h in headings] == [(0, "A", "A"), (1, "B", "A\nB")]
    assert headings[1].element == "h2"


def test_levels_are_clamped_and_ids_defaulted() -> None:
    headings = headings_from_raw([RawHeading("x", 9, "Deep"), RawHeading("y", 0, "Top", "custom")])

    assert [h.level for h in headings] == [6, 1]
    assert headings[0].id == "heading-0"
    assert headings[1].id == "custom"


def test_ancestor_paths_outermost_first() -> None:
    assert ancestor_paths("A\nB\nC") == ["A", "A\nB"]
    assert ancestor_paths("A") == []
    assert join_path("", "A") == "A"
    assert join_path("A", "B") == "A\nB"


def test_outline_hash_tracks_paths_only() -> None:
    first = headings_from_raw(_raw((1, "A"), (2, "B")))
    moved_elements = headings_from_raw([RawHeading("other", 1, "A"), RawHeading("ids", 2, "B")])
    renamed = headings_from_raw(_raw((1, "A"), (2, "C")))
    promoted = headings_from_raw(_raw((1, "A"), (1, "B")))

    assert outline_hash(first) == outline_hash(moved_elements)
    assert outline_hash(first) != outline_hash(renamed)
    assert outline_hash(first) != outline_hash(promoted)


def test_toc_markdown_escapes_punctuation() -> None:
    assert escape_markdown_text("*bold* [x](y) #1") == r"\*bold\* \[x\]\(y\) \#1"

    headings = headings_from_raw(_raw((1, "A_b"), (3, "c")))
    assert build_toc_markdown(headings) == "# A\\_b\n### c"
