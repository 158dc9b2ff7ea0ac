"""Tests for directory scanning, type detection, and pattern hints."""

from __future__ import annotations

from pathlib import Path

from conftest import make_descriptor

from reorg.config import ScanningOptions
from reorg.ingestion import DirectoryScanner, FileKind, PatternAnalyzer, file_category
from reorg.negotiation import format_file_size


def _touch(path: Path, content: str = "data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _scanner(**overrides) -> DirectoryScanner:
    options = ScanningOptions(**overrides)
    return DirectoryScanner(
        recursive=options.recursive,
        include_hidden=options.include_hidden,
        follow_symlinks=options.follow_symlinks,
        max_depth=options.max_depth,
        exclude_patterns=options.exclude_patterns,
        include_patterns=options.include_patterns,
    )


def test_scanner_lists_top_level_files_and_skips_defaults(tmp_path: Path) -> None:
    _touch(tmp_path / "report.pdf", "pdf-bytes")
    _touch(tmp_path / "notes.txt")
    _touch(tmp_path / ".hidden")
    _touch(tmp_path / "cache.tmp")
    _touch(tmp_path / "nested" / "deep.txt")

    descriptors = list(_scanner().scan(tmp_path))

    assert [item.name for item in descriptors] == ["notes.txt", "report.pdf"]
    report = descriptors[1]
    assert report.extension == ".pdf"
    assert report.size == len("pdf-bytes")
    assert report.kind is FileKind.FILE
    assert report.modified.tzinfo is not None


def test_scanner_recurses_and_prunes_excluded_directories(tmp_path: Path) -> None:
    _touch(tmp_path / "top.txt")
    _touch(tmp_path / "nested" / "deep.txt")
    _touch(tmp_path / "node_modules" / "pkg" / "index.js")
    _touch(tmp_path / ".git" / "HEAD")

    names = sorted(item.name for item in _scanner(recursive=True, include_hidden=True).scan(tmp_path))

    assert names == ["deep.txt", "top.txt"]


def test_scanner_honours_include_patterns_and_max_depth(tmp_path: Path) -> None:
    _touch(tmp_path / "a.txt")
    _touch(tmp_path / "b.pdf")
    _touch(tmp_path / "one" / "c.txt")
    _touch(tmp_path / "one" / "two" / "d.txt")

    scanner = _scanner(recursive=True, max_depth=1, include_patterns=["*.txt"])
    names = sorted(item.name for item in scanner.scan(tmp_path))

    assert names == ["a.txt", "c.txt"]


def test_scanner_returns_nothing_for_missing_directory(tmp_path: Path) -> None:
    assert list(_scanner().scan(tmp_path / "missing")) == []


def test_file_category_buckets() -> None:
    assert file_category(make_descriptor("photo.JPG")) == "images"
    assert file_category(make_descriptor("clip.mp4")) == "videos"
    assert file_category(make_descriptor("report.pdf")) == "documents"
    assert file_category(make_descriptor("ledger.xlsx")) == "spreadsheets"
    assert file_category(make_descriptor("bundle.7z")) == "archives"
    assert file_category(make_descriptor("main.py")) == "code"
    assert file_category(make_descriptor("blob.xyz")) == "misc"


def test_format_file_size_uses_one_decimal() -> None:
    assert format_file_size(0) == "0.0 B"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(5 * 1024 * 1024) == "5.0 MB"
    assert format_file_size(3 * 1024**4) == "3072.0 GB"


def test_pattern_analyzer_reports_series_versions_dates_and_archives() -> None:
    files = [
        make_descriptor("Show.Name.S01E02.mkv"),
        make_descriptor("Show.Name.S01E03.mkv"),
        make_descriptor("report_v2.pdf"),
        make_descriptor("2024-01-05 notes.txt"),
        make_descriptor("2024-01-20 notes.txt"),
        make_descriptor("backup.zip"),
    ]

    analysis = PatternAnalyzer().analyze(files)

    assert analysis.hints == [
        "Detected 1 TV/movie series with episode patterns",
        'Series "Show Name" has 2 files',
        "Found files that could be organized by date/time periods",
        "Some files appear to be different versions of the same content",
        "Archive files detected - consider if they should be extracted or organized separately",
    ]
    assert 'Consider organizing "Show Name" files in TV Shows/Show Name/' in (
        analysis.structure_suggestions
    )
    assert analysis.matches["report_v2.pdf"][0].metadata == {"base_name": "report", "version": "2"}


def test_pattern_analyzer_groups_project_markers() -> None:
    project = Path("/work/widget")
    files = [
        make_descriptor("package.json", directory=project),
        make_descriptor("README.md", directory=project),
        make_descriptor("photo.jpg"),
    ]

    hints = PatternAnalyzer().hints(files)

    assert hints == [
        "Detected 1 potential code/document projects",
        'Project "widget" has 2 files',
    ]


def test_supplied_project_groups_replace_marker_detection() -> None:
    project = Path("/work/widget")
    files = [
        make_descriptor("package.json", directory=project),
        make_descriptor("README.md", directory=project),
        make_descriptor("main.js", directory=project),
    ]
    analyzer = PatternAnalyzer()

    assert analyzer.project_groups(files) == {"widget": ["package.json", "README.md"]}

    hints = analyzer.hints(files, projects={"widget": ["package.json", "README.md", "main.js"]})

    assert 'Project "widget" has 3 files' in hints
