"""Package tree reader.

Walks a package directory depth-first in lexical order, decodes every file
that survives the ignore rules and the file-name globs, and returns the
documents of all files as one flat list. Each document is annotated with
the slash-separated path of its file relative to the package root, so the
list can later be written back to the same layout.
"""

from __future__ import annotations

import enum
import fnmatch
import logging
import os
from pathlib import Path
from typing import List

from pkgtree.annotations import PATH_ANNOTATION
from pkgtree.codec.yaml_codec import decode
from pkgtree.config import ReaderConfig
from pkgtree.errors import TraversalError
from pkgtree.ignore.matcher import IgnoreFilesMatcher
from pkgtree.models import Document

LOGGER = logging.getLogger(__name__)


class WalkDecision(enum.Enum):
    DESCEND = "descend"
    SKIP = "skip"


class LocalPackageReader:
    """Reads documents from a package on the local filesystem."""

    def __init__(self, config: ReaderConfig) -> None:
        self.config = config
        # Directory path annotations of the last read are relative to.
        self.base_dir: Path | None = None

    def read(self) -> List[Document]:
        """Read all matching documents under the package path.

        Raises:
            ConfigurationError: If no package path is configured.
            TraversalError: If the tree cannot be walked or a file opened.
            DecodeError: If a file holds invalid YAML or a rejected
                non-resource document.
        """
        root = self.config.resolve_package_path()
        documents: List[Document] = []
        matcher = IgnoreFilesMatcher(self.config.ignore_file_name)

        if root.is_dir():
            base = root
            self._walk_dir(root, base, matcher.read_ignore_file(root), documents)
        elif root.exists():
            # A lone file is a one-file package rooted at its parent.
            base = root.parent
            self._visit_file(root, base, matcher, documents)
        else:
            raise TraversalError(root, "no such file or directory")

        self.base_dir = base
        LOGGER.info("Read %s documents from %s", len(documents), root.as_posix())
        return documents

    def decide_dir(
        self, path: Path, matcher: IgnoreFilesMatcher
    ) -> tuple[WalkDecision, IgnoreFilesMatcher]:
        """Decide whether to descend into ``path``.

        Returns the decision and the matcher to use inside the directory.
        A sub-package is never skipped because of its parent's ignore rules;
        when included it starts a new ignore chain rooted at itself.
        """
        marker = self.config.package_file_name
        if marker and self._is_subpackage(path, marker):
            if not self.config.include_subpackages:
                LOGGER.debug("Skipping sub-package %s", path)
                return WalkDecision.SKIP, matcher
            subpackage = IgnoreFilesMatcher(self.config.ignore_file_name)
            return WalkDecision.DESCEND, subpackage.read_ignore_file(path)

        if matcher.match_dir(path):
            LOGGER.debug("Skipping ignored directory %s", path)
            return WalkDecision.SKIP, matcher
        return WalkDecision.DESCEND, matcher.read_ignore_file(path)

    def should_read_file(self, path: Path, matcher: IgnoreFilesMatcher) -> bool:
        """True when ``path`` is not ignored and its name matches a glob."""
        if matcher.match_file(path):
            LOGGER.debug("Skipping ignored file %s", path)
            return False
        return any(fnmatch.fnmatch(path.name, pattern) for pattern in self.config.match_files_glob)

    def _is_subpackage(self, path: Path, marker: str) -> bool:
        try:
            os.stat(path / marker)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise TraversalError(path / marker, f"cannot stat package file: {exc}") from exc
        return True

    def _walk_dir(
        self,
        directory: Path,
        base: Path,
        matcher: IgnoreFilesMatcher,
        documents: List[Document],
    ) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as exc:
            raise TraversalError(directory, f"cannot list directory: {exc}") from exc

        for entry in entries:
            path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                decision, child_matcher = self.decide_dir(path, matcher)
                if decision is WalkDecision.DESCEND:
                    self._walk_dir(path, base, child_matcher, documents)
            else:
                self._visit_file(path, base, matcher, documents)

    def _visit_file(
        self,
        path: Path,
        base: Path,
        matcher: IgnoreFilesMatcher,
        documents: List[Document],
    ) -> None:
        if not self.should_read_file(path, matcher):
            return

        relative = os.path.relpath(path, base).replace(os.sep, "/")
        annotations = dict(self.config.set_annotations)
        if not self.config.omit_reader_annotations:
            annotations[PATH_ANNOTATION] = relative

        try:
            with open(path, "rb") as handle:
                nodes = decode(
                    handle,
                    source=str(path),
                    set_annotations=annotations,
                    omit_reader_annotations=self.config.omit_reader_annotations,
                    error_if_non_resources=self.config.error_if_non_resources,
                )
        except OSError as exc:
            raise TraversalError(path, f"cannot read file: {exc}") from exc

        LOGGER.debug("Read %s documents from %s", len(nodes), relative)
        documents.extend(nodes)
