from __future__ import annotations

from conftest import FakeDiagram, FakeHost

from tocmap.config import MindmapOptions
from tocmap.synchronizer import EMPTY_OUTLINE_MESSAGE, OutlineSynchronizer


def _sync(host, transformer, scheduler, **options):
    sync = OutlineSynchronizer(host, transformer, scheduler, MindmapOptions(**options))
    diagram = FakeDiagram()
    sync.attach(diagram)
    return sync, diagram


def test_update_without_a_diagram_does_nothing(host, transformer, scheduler) -> None:
    sync = OutlineSynchronizer(host, transformer, scheduler)

    assert sync.update() is False
    assert sync.rebuild_count == 0


def test_unchanged_outline_does_not_touch_the_diagram(host, transformer, scheduler) -> None:
    sync, diagram = _sync(host, transformer, scheduler)

    assert sync.update() is True
    assert sync.update() is False
    assert diagram.set_data_calls == 1
    assert sync.rebuild_count == 1
    assert sync.update(force=True) is True
    assert diagram.set_data_calls == 2


def test_every_heading_is_indexed_after_a_rebuild(host, transformer, scheduler) -> None:
    sync, _diagram = _sync(host, transformer, scheduler)
    sync.update()

    assert len(sync.index) == len(sync.headings) == 5
    assert sync.index.lookup_element("Conclusion\nBackground") == "background-2"
    assert set(sync.nodes) == set(sync.index.paths())


def test_fold_state_is_kept_across_edits(host, transformer, scheduler) -> None:
    sync, diagram = _sync(host, transformer, scheduler)
    sync.update()
    diagram.toggle_node(sync.nodes["Intro"])

    host.set_headings(host.headings + [("appendix", 1, "Appendix", 2000.0)])
    assert sync.update() is True

    assert sync.nodes["Intro"].folded
    assert not sync.nodes["Conclusion"].folded
    assert diagram.root is sync.root


def test_initial_expand_level_only_applies_to_the_first_build(host, transformer, scheduler) -> None:
    sync, diagram = _sync(host, transformer, scheduler, initial_expand_level=1)
    sync.update()
    assert sync.nodes["Intro"].folded

    diagram.toggle_node(sync.nodes["Intro"])
    sync.update(force=True)

    assert not sync.nodes["Intro"].folded
    assert sync.nodes["Conclusion"].folded


def test_empty_outline_shows_a_message(transformer, scheduler) -> None:
    sync, diagram = _sync(FakeHost([("blank", 1, "   ", 0.0)]), transformer, scheduler)

    assert sync.update() is True

    assert diagram.messages == [(EMPTY_OUTLINE_MESSAGE, False)]
    assert sync.root is None
    assert len(sync.index) == 0
    assert sync.update() is False


def test_failed_rebuild_keeps_the_previous_index(host, transformer, scheduler) -> None:
    sync, diagram = _sync(host, transformer, scheduler)
    sync.update()
    old_paths = sync.index.paths()

    host.set_headings(host.headings[:2])
    diagram.fail_next_set_data = RuntimeError("layout exploded")
    assert sync.update() is False

    assert diagram.messages == [("Render error: layout exploded", True)]
    assert sync.last_error == "layout exploded"
    assert sync.outline_hash is None
    assert sync.index.paths() == old_paths

    # Hash was cleared, so the next cycle retries.
    assert sync.update() is True
    assert sync.last_error is None
    assert sync.index.paths() == ["Intro", "Intro\nBackground"]


def test_new_element_references_are_reindexed_without_a_rebuild(host, transformer, scheduler) -> None:
    sync, diagram = _sync(host, transformer, scheduler)
    sync.update()

    host.set_headings([(f"new-{element}", level, text, offset) for element, level, text, offset in host.headings])
    assert sync.update() is False

    assert diagram.set_data_calls == 1
    assert sync.index.lookup_path("new-methods") == "Intro\nMethods"
    assert sync.index.lookup_path("methods") is None


def test_attach_resets_the_hash(host, transformer, scheduler) -> None:
    sync, _diagram = _sync(host, transformer, scheduler)
    sync.update()
    folded_root = sync.root
    sync.nodes["Intro"].payload["fold"] = True

    sync.detach()
    fresh = FakeDiagram()
    sync.attach(fresh)

    assert sync.update() is True
    assert fresh.set_data_calls == 1
    assert sync.root is not folded_root
    assert sync.nodes["Intro"].folded


def test_reverting_after_a_failed_rebuild_redraws(host, transformer, scheduler) -> None:
    sync, diagram = _sync(host, transformer, scheduler)
    sync.update()
    original = list(host.headings)

    host.set_headings(original[:2])
    diagram.fail_next_set_data = RuntimeError("bad edit")
    assert sync.update() is False
    assert diagram.root is None

    host.set_headings(original)
    assert sync.update() is True

    assert diagram.root is sync.root
    assert diagram.set_data_calls == 2
    assert len(sync.index) == 5
