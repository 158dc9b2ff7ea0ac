"""Directory scanning and filename pattern hints."""

from .detectors import TypeDetector, file_category
from .discovery import DirectoryScanner
from .models import FileDescriptor, FileKind
from .patterns import PatternAnalyzer

__all__ = [
    "DirectoryScanner",
    "FileDescriptor",
    "FileKind",
    "PatternAnalyzer",
    "TypeDetector",
    "file_category",
]
