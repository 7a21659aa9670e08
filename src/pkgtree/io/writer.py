"""Package tree writer.

Groups documents by their path annotation and writes each group to its
file below the package root, ordered by the index annotation. Documents
the reader skipped (those without ``apiVersion`` and ``kind``) are kept in
their place when a file is rewritten.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import posixpath
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from ruamel.yaml.comments import CommentedMap

from pkgtree.annotations import (
    INDEX_ANNOTATION,
    READER_ANNOTATIONS,
    clear_annotations,
    get_file_annotations,
)
from pkgtree.codec.yaml_codec import encode_contents, is_resource, load_contents
from pkgtree.config import DEFAULT_MATCH
from pkgtree.errors import AnnotationError, ConfigurationError, TraversalError
from pkgtree.models import Document, WriteStats
from pkgtree.utils.files import compute_sha256, sha256_bytes, write_bytes_atomic

LOGGER = logging.getLogger(__name__)


def package_base_dir(
    package_path: Path | str, match_files_glob: Sequence[str] = DEFAULT_MATCH
) -> Path:
    """Directory that path annotations are relative to.

    A package path naming a single file is a one-file package rooted at
    the file's parent directory. A path that does not exist is taken for
    a file when its name matches one of ``match_files_glob``.
    """
    path = Path(os.path.abspath(package_path))
    if path.is_dir():
        return path
    if path.exists() or any(fnmatch.fnmatch(path.name, pattern) for pattern in match_files_glob):
        return path.parent
    return path


def resolve_document_path(base: Path, relative: str) -> Path:
    """Join a path annotation onto ``base``, refusing paths that leave it."""
    normalized = posixpath.normpath(relative)
    if (
        posixpath.isabs(normalized)
        or os.path.isabs(relative)
        or normalized == ".."
        or normalized.startswith("../")
        or normalized == "."
    ):
        raise AnnotationError(f"path annotation {relative!r} is outside the package")
    return base.joinpath(*normalized.split("/"))


def fold_annotations(
    document: Document,
    *,
    clear: Iterable[str] = (),
    keep_reader_annotations: bool = False,
) -> Document:
    """Copy of ``document`` with its annotations merged into ``metadata.annotations``.

    Keys in ``clear`` are dropped first. Reader annotations are dropped
    unless ``keep_reader_annotations`` is set. The input is not modified.
    """
    prepared = document.copy()
    clear_annotations(prepared, clear)
    if not keep_reader_annotations:
        clear_annotations(prepared, READER_ANNOTATIONS)
    if not prepared.annotations or not isinstance(prepared.content, dict):
        return prepared

    metadata = prepared.content.setdefault("metadata", CommentedMap())
    if not isinstance(metadata, dict):
        return prepared
    annotations = metadata.get("annotations")
    if not isinstance(annotations, dict):
        annotations = CommentedMap()
        metadata["annotations"] = annotations
    annotations.update(prepared.annotations)
    return prepared


def load_file(target: Path) -> List[Any]:
    """Contents of every document currently stored in ``target``.

    Raises:
        OSError: If the file cannot be opened, ``FileNotFoundError``
            included.
        DecodeError: If the file does not hold valid YAML.
    """
    with open(target, "rb") as handle:
        return load_contents(handle, source=str(target))


def merge_contents(existing: Sequence[Any], contents: Sequence[Any]) -> List[Any]:
    """Place ``contents`` into the resource slots of ``existing``.

    Non-resource documents of ``existing`` keep their position. Resource
    slots are filled with ``contents`` in order; surplus slots are dropped
    and surplus contents appended.
    """
    merged: List[Any] = []
    position = 0
    for content in existing:
        if not is_resource(content):
            merged.append(content)
        elif position < len(contents):
            merged.append(contents[position])
            position += 1
    merged.extend(contents[position:])
    return merged


class LocalPackageWriter:
    """Writes annotated documents back to a package directory."""

    def __init__(
        self,
        package_path: Path | str,
        *,
        base_dir: Path | None = None,
        match_files_glob: Sequence[str] = DEFAULT_MATCH,
        clear_annotations: Iterable[str] = (),
        keep_reader_annotations: bool = False,
        reformat: bool = False,
    ) -> None:
        self.package_path = package_path
        self.base_dir = base_dir
        self.match_files_glob = list(match_files_glob)
        self.clear_annotations = list(clear_annotations)
        self.keep_reader_annotations = keep_reader_annotations
        self.reformat = reformat

    def resolve_base_dir(self) -> Path:
        if self.base_dir is not None:
            return self.base_dir
        if not self.package_path:
            raise ConfigurationError("must specify package path")
        return package_base_dir(self.package_path, self.match_files_glob)

    def write(self, documents: Sequence[Document]) -> WriteStats:
        """Write every document to the file named by its path annotation.

        A file whose documents equal the ones already stored is left
        untouched, byte for byte. Otherwise the file is re-encoded, keeping
        comments and the documents the reader skipped. With ``reformat``
        set, unchanged files are re-encoded too.

        Raises:
            ConfigurationError: If no package path is configured.
            AnnotationError: If a document has no usable path or index.
            DecodeError: If a file to rewrite no longer holds valid YAML.
            TraversalError: If a file cannot be read or written.
        """
        base = self.resolve_base_dir()

        groups = self._group(documents)
        targets = {relative: resolve_document_path(base, relative) for relative in groups}

        stats = WriteStats()
        for relative, group in groups.items():
            target = targets[relative]
            contents = [self._prepare(document).content for document in group]
            status = self.write_contents(target, contents)
            LOGGER.debug("%s %s (%s documents)", status.capitalize(), relative, len(group))
            stats.increment(status, target)

        LOGGER.info("Wrote %s files, %s unchanged", stats.written, stats.skipped)
        return stats

    def write_contents(self, target: Path, contents: Sequence[Any]) -> str:
        """Store ``contents`` as the resource documents of ``target``.

        Returns ``"written"`` or ``"skipped"``.
        """
        try:
            try:
                existing = load_file(target)
            except FileNotFoundError:
                existing = None
            if existing is not None and not self.reformat:
                if [content for content in existing if is_resource(content)] == list(contents):
                    return "skipped"
            data = encode_contents(merge_contents(existing or [], contents))
            if existing is not None and compute_sha256(target) == sha256_bytes(data):
                return "skipped"
            write_bytes_atomic(target, data)
        except OSError as exc:
            raise TraversalError(target, f"cannot write file: {exc}") from exc
        return "written"

    def _group(self, documents: Sequence[Document]) -> Dict[str, List[Document]]:
        grouped: Dict[str, List[tuple[tuple[int, int], int, Document]]] = {}
        for arrival, document in enumerate(documents):
            path, index = get_file_annotations(document)
            grouped.setdefault(path, []).append((_index_key(path, index), arrival, document))
        return {
            path: [document for _, _, document in sorted(entries, key=lambda e: (e[0], e[1]))]
            for path, entries in grouped.items()
        }

    def _prepare(self, document: Document) -> Document:
        return fold_annotations(
            document,
            clear=self.clear_annotations,
            keep_reader_annotations=self.keep_reader_annotations,
        )


def _index_key(path: str, index: str | None) -> tuple[int, int]:
    """Sort key placing indexed documents first, in index order."""
    if index is None:
        return (1, 0)
    try:
        return (0, int(index))
    except ValueError:
        raise AnnotationError(
            f"{INDEX_ANNOTATION} of a document in {path} must be an integer, got {index!r}"
        ) from None
