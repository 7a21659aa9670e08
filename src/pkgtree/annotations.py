"""Annotation helpers for documents read from a package."""

from __future__ import annotations

from typing import Iterable

from pkgtree.errors import AnnotationError
from pkgtree.models import Document

PATH_ANNOTATION = "config.kubernetes.io/path"
INDEX_ANNOTATION = "config.kubernetes.io/index"

# Annotations the reader stamps; they are stripped on write unless kept.
READER_ANNOTATIONS = (PATH_ANNOTATION, INDEX_ANNOTATION)


def get_annotation(document: Document, key: str) -> tuple[str | None, bool]:
    """Return ``(value, present)`` for an annotation key."""
    if key in document.annotations:
        return document.annotations[key], True
    return None, False


def set_annotation(document: Document, key: str, value: str) -> None:
    document.annotations[key] = str(value)


def clear_annotation(document: Document, key: str) -> None:
    document.annotations.pop(key, None)


def clear_annotations(document: Document, keys: Iterable[str]) -> None:
    for key in keys:
        clear_annotation(document, key)


def get_file_annotations(document: Document) -> tuple[str, str | None]:
    """Return the ``(path, index)`` provenance of a document.

    Raises:
        AnnotationError: If the path annotation is missing or empty.
    """
    path, present = get_annotation(document, PATH_ANNOTATION)
    if not present or not path:
        raise AnnotationError(
            f"document {document.kind or '<unknown kind>'}/{document.name or '<unnamed>'} "
            f"is missing the {PATH_ANNOTATION} annotation"
        )
    index, _ = get_annotation(document, INDEX_ANNOTATION)
    return path, index
