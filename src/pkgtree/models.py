"""Core pkgtree data models."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List


@dataclass(slots=True)
class Document:
    """A single decoded YAML document and its annotations.

    ``annotations`` is a side-channel kept next to the content rather than
    inside it, so provenance survives transforms that rebuild ``content``.
    """

    content: Any
    annotations: Dict[str, str] = field(default_factory=dict)

    def _field(self, key: str) -> Any:
        if isinstance(self.content, dict):
            return self.content.get(key)
        return None

    @property
    def api_version(self) -> str | None:
        return self._field("apiVersion")

    @property
    def kind(self) -> str | None:
        return self._field("kind")

    @property
    def name(self) -> str | None:
        metadata = self._field("metadata")
        if isinstance(metadata, dict):
            return metadata.get("name")
        return None

    @property
    def is_resource(self) -> bool:
        """True when the document carries both ``apiVersion`` and ``kind``."""
        return bool(self.api_version) and bool(self.kind)

    def copy(self) -> "Document":
        return Document(content=copy.deepcopy(self.content), annotations=dict(self.annotations))


@dataclass(slots=True)
class WriteStats:
    written: int = 0
    skipped: int = 0
    deleted: int = 0
    written_files: List[Path] = field(default_factory=list)
    deleted_files: List[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "written":
            self.written += 1
            self.written_files.append(path)
        elif status == "deleted":
            self.deleted += 1
            self.deleted_files.append(path)
        else:
            self.skipped += 1
