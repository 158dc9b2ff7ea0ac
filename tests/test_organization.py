"""Tests for suggestion post-processing and move planning."""

from __future__ import annotations

from pathlib import Path

from conftest import make_descriptor

from reorg.config import OrganizationOptions
from reorg.organization import MovePlanner, Suggestion, SuggestionPostProcessor, to_move_plan


def _suggestion(name: str, path: str, *, confidence: float = 0.9, directory: Path | None = None):
    descriptor = make_descriptor(name, directory=directory) if directory else make_descriptor(name)
    return Suggestion(
        file=descriptor,
        file_name=name,
        suggested_path=path,
        reason="grouped",
        confidence=confidence,
        category=path.split("/")[0],
    )


def test_threshold_drops_only_strictly_lower_confidence() -> None:
    processor = SuggestionPostProcessor(confidence_threshold=0.7)
    suggestions = [
        _suggestion("a.txt", "Docs/a.txt", confidence=0.69),
        _suggestion("b.txt", "Docs/b.txt", confidence=0.7),
        _suggestion("c.txt", "Docs/c.txt", confidence=1.0),
    ]

    kept = processor.process(suggestions)

    assert [item.file_name for item in kept] == ["b.txt", "c.txt"]
    assert kept[0] is not suggestions[1]


def test_preserve_original_names_keeps_suggested_folder() -> None:
    processor = SuggestionPostProcessor.from_options(
        OrganizationOptions(confidence_threshold=0.0, preserve_original_names=True)
    )
    suggestions = [
        _suggestion("IMG_0001.jpg", "Photos/2024/beach.jpg"),
        _suggestion("notes.txt", "renamed.txt"),
        _suggestion("scan.pdf", "Docs\\Scans\\invoice.pdf"),
    ]

    kept = processor.process(suggestions)

    assert [item.suggested_path for item in kept] == [
        "Photos/2024/IMG_0001.jpg",
        "notes.txt",
        "Docs/Scans/scan.pdf",
    ]
    assert suggestions[0].suggested_path == "Photos/2024/beach.jpg"


def test_plan_moves_bound_suggestions_under_base(tmp_path: Path) -> None:
    root = tmp_path.resolve()
    suggestion = _suggestion("a.txt", "Docs/a.txt", directory=root)

    plan = to_move_plan([suggestion], root)

    assert plan.base_directory == root
    assert len(plan.moves) == 1
    move = plan.moves[0]
    assert move.source == root / "a.txt"
    assert move.destination == root / "Docs" / "a.txt"
    assert move.reasoning == "grouped"
    assert move.confidence == 0.9
    assert plan.skipped == []


def test_plan_skips_unbound_escaping_and_noop_entries(tmp_path: Path) -> None:
    root = tmp_path.resolve()
    unbound = Suggestion(file_name="ghost.txt", suggested_path="Docs/ghost.txt")
    escaping = _suggestion("b.txt", "../outside/b.txt", directory=root)
    absolute = _suggestion("c.txt", "/etc/c.txt", directory=root)
    in_place = _suggestion("d.txt", "d.txt", directory=root)

    plan = MovePlanner().build_plan([unbound, escaping, absolute, in_place], root)

    assert plan.moves == []
    assert plan.skipped == ["ghost.txt", "b.txt", "c.txt", "d.txt"]
    assert any("not bound" in note for note in plan.notes)
    assert any("outside" in note for note in plan.notes)
