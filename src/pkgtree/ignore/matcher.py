"""Ignore-file matching for package traversal.

Each directory that carries an ignore file contributes a scope of
gitignore-style rules (parsed with pathspec) for itself and its
descendants. Scopes form a chain from the package root down to the
directory being visited; a path is excluded when any scope in the chain
matches it. A scope can only add exclusions: negated patterns apply
within the ignore file that declares them, never across scopes.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import pathspec

from pkgtree.errors import TraversalError

LOGGER = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE_NAME = ".krmignore"


@dataclass(frozen=True, slots=True)
class _Scope:
    directory: str
    spec: "pathspec.PathSpec"


class IgnoreFilesMatcher:
    """Immutable chain of ignore scopes.

    ``read_ignore_file`` returns a new matcher rather than mutating this
    one, so each branch of a traversal holds exactly the scopes of its
    ancestors.
    """

    def __init__(
        self,
        ignore_file_name: str = DEFAULT_IGNORE_FILE_NAME,
        *,
        _scopes: tuple[_Scope, ...] = (),
        _head: str | None = None,
    ) -> None:
        self.ignore_file_name = ignore_file_name
        self._scopes = _scopes
        self._head = _head

    @property
    def scopes(self) -> tuple[str, ...]:
        """Directories whose ignore files are in effect, outermost first."""
        return tuple(scope.directory for scope in self._scopes)

    def read_ignore_file(self, dir_path: str | Path) -> "IgnoreFilesMatcher":
        """Return the matcher in effect inside ``dir_path``.

        Loads ``dir_path/<ignore_file_name>`` when present. Returns self
        when called again for the directory it was last entered for.

        Raises:
            TraversalError: If the ignore file exists but cannot be read.
        """
        directory = _normalize(dir_path)
        if directory == self._head:
            return self

        ignore_path = os.path.join(directory, self.ignore_file_name)
        scopes = self._scopes
        try:
            with open(ignore_path, encoding="utf-8") as handle:
                lines = handle.readlines()
        except FileNotFoundError:
            pass
        except (OSError, UnicodeDecodeError) as exc:
            raise TraversalError(ignore_path, f"cannot read ignore file: {exc}") from exc
        else:
            LOGGER.debug("Loaded %s", ignore_path)
            spec = pathspec.PathSpec.from_lines("gitwildmatch", lines)
            scopes = scopes + (_Scope(directory=directory, spec=spec),)

        return IgnoreFilesMatcher(self.ignore_file_name, _scopes=scopes, _head=directory)

    def match_file(self, path: str | Path) -> bool:
        """True when the file at ``path`` is excluded."""
        return self._match(_normalize(path), is_dir=False)

    def match_dir(self, path: str | Path) -> bool:
        """True when the directory at ``path`` is excluded."""
        return self._match(_normalize(path), is_dir=True)

    def _match(self, path: str, *, is_dir: bool) -> bool:
        for scope in self._scopes:
            relative = _relative_to(path, scope.directory)
            if relative is None:
                continue
            if is_dir:
                relative += "/"
            if scope.spec.match_file(relative):
                return True
        return False


def _normalize(path: str | Path) -> str:
    return os.path.abspath(os.fspath(path)).replace(os.sep, "/")


def _relative_to(path: str, directory: str) -> str | None:
    """Slash path of ``path`` below ``directory``, or None when outside it."""
    if path == directory:
        return None
    prefix = directory if directory.endswith("/") else directory + "/"
    if not path.startswith(prefix):
        return None
    return path[len(prefix):]
