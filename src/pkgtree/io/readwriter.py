"""Read/write round trips over a local package.

``LocalPackageReadWriter`` remembers which files the last read produced
documents from. When the documents are written back, files that no longer
have any document are deleted. Files that were never read are never
touched.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import FrozenSet, List, Sequence, Set

from pkgtree.annotations import get_file_annotations
from pkgtree.codec.yaml_codec import is_resource
from pkgtree.config import ReadWriterConfig
from pkgtree.errors import DeletionError, PkgTreeError
from pkgtree.io.reader import LocalPackageReader
from pkgtree.io.writer import LocalPackageWriter, load_file, resolve_document_path
from pkgtree.models import Document, WriteStats

LOGGER = logging.getLogger(__name__)


def document_files(documents: Sequence[Document]) -> Set[str]:
    """Set of path annotations of ``documents``.

    Raises:
        AnnotationError: If any document lacks a path annotation.
    """
    return {get_file_annotations(document)[0] for document in documents}


class LocalPackageReadWriter:
    """Reads a package and writes it back, deleting emptied files."""

    def __init__(self, config: ReadWriterConfig) -> None:
        self.config = config
        self._files: Set[str] = set()
        self._base_dir: Path | None = None

    @property
    def known_files(self) -> FrozenSet[str]:
        """Files seen by the most recent successful read or write."""
        return frozenset(self._files)

    @property
    def tracks_deletions(self) -> bool:
        # Without path annotations there is nothing to diff.
        return not (self.config.no_delete_files or self.config.omit_reader_annotations)

    def read(self) -> List[Document]:
        reader = LocalPackageReader(self.config.reader_config())
        documents = reader.read()
        self._base_dir = reader.base_dir
        if self.tracks_deletions:
            self._files = document_files(documents)
        return documents

    def write(self, documents: Sequence[Document], *, reformat: bool = False) -> WriteStats:
        """Write ``documents`` and delete files none of them belong to anymore.

        Paths are resolved against the directory of the last successful
        read, so a one-file package stays one file even after that file
        is gone. A stale file that still holds documents without
        ``apiVersion`` and ``kind`` is rewritten with only those instead
        of being deleted.

        Every stale file is attempted even when an earlier deletion fails;
        the first failure is raised once all attempts are done. Written
        files are not rolled back.

        Raises:
            AnnotationError: If a document lacks a path annotation. Nothing
                is written in that case.
            DeletionError: If a stale file could not be removed.
        """
        new_files = document_files(documents)
        writer = LocalPackageWriter(
            self.config.resolve_package_path(),
            base_dir=self._base_dir,
            match_files_glob=self.config.match_files_glob,
            clear_annotations=list(self.config.set_annotations),
            keep_reader_annotations=self.config.keep_reader_annotations,
            reformat=reformat,
        )
        stats = writer.write(documents)
        if not self.tracks_deletions:
            return stats

        base = writer.resolve_base_dir()
        failures: List[tuple[str, Exception]] = []
        for relative in sorted(self._files - new_files):
            target = resolve_document_path(base, relative)
            try:
                status = self._remove_stale(writer, target)
            except FileNotFoundError:
                LOGGER.debug("Stale file %s is already gone", relative)
                continue
            except (OSError, PkgTreeError) as exc:
                LOGGER.warning("Failed to delete %s: %s", target, exc)
                failures.append((relative, exc))
                continue
            stats.increment(status, target)

        # Files that could not be deleted stay known so the next write retries them.
        self._files = new_files | {relative for relative, _ in failures}
        if failures:
            relative, exc = failures[0]
            raise DeletionError(
                resolve_document_path(base, relative),
                f"cannot delete stale file ({len(failures)} deletion(s) failed): {exc}",
            ) from exc
        return stats

    def _remove_stale(self, writer: LocalPackageWriter, target: Path) -> str:
        retained = [content for content in load_file(target) if not is_resource(content)]
        if retained:
            LOGGER.info("Keeping %s non-resource documents in %s", len(retained), target)
            return writer.write_contents(target, [])
        os.remove(target)
        LOGGER.info("Deleted %s", target)
        return "deleted"
