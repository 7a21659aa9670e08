"""
Custom exceptions for pkgtree.
"""

from __future__ import annotations

from pathlib import Path


class PkgTreeError(Exception):
    """
    Base exception for pkgtree.
    All custom exceptions in the package should inherit from this.
    """


class ConfigurationError(PkgTreeError):
    """Raised when reader or writer options are missing or invalid."""


class _PathError(PkgTreeError):
    """Error tied to a specific file or directory."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = str(path)
        super().__init__(f"{self.path}: {message}")


class TraversalError(_PathError):
    """
    Raised when the filesystem cannot be walked.

    Covers missing roots, unreadable directories and ignore files, and
    files that cannot be opened.
    """


class DecodeError(_PathError):
    """Raised when a file holds malformed YAML or a rejected non-resource."""


class AnnotationError(PkgTreeError):
    """
    Raised when a document lacks the provenance annotations needed to
    write it back or to track which files it came from.
    """


class DeletionError(_PathError):
    """Raised when a stale file cannot be removed after a write."""
