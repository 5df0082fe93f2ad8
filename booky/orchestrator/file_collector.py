"""File collection utilities for folder uploads."""
from pathlib import Path
from typing import Iterable, List

from ..models import MEDIA_TYPES


class FileCollector:
    """Collects book files (PDF/EPUB) from paths and folders."""

    @staticmethod
    def is_book(path: Path) -> bool:
        return path.suffix.lower() in MEDIA_TYPES

    @classmethod
    def collect_files(cls, folder: Path) -> List[Path]:
        """
        Collect all book files recursively.

        Args:
            folder: Root folder to scan

        Returns:
            Sorted list of book file paths
        """
        files = []
        for item in folder.rglob("*"):
            if item.is_file() and cls.is_book(item):
                files.append(item)
        return sorted(files)

    @classmethod
    def collect(cls, paths: Iterable[Path]) -> List[Path]:
        """Expand folders, keep explicit files as given, drop duplicates."""
        seen = set()
        result = []
        for path in paths:
            path = Path(path)
            candidates = cls.collect_files(path) if path.is_dir() else [path]
            for candidate in candidates:
                key = candidate.resolve()
                if key not in seen:
                    seen.add(key)
                    result.append(candidate)
        return result
