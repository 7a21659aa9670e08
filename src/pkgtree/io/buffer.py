"""In-memory stand-in for a package."""

from __future__ import annotations

from typing import List, Sequence

from pkgtree.models import Document


class PackageBuffer:
    """Stores documents in memory; ``read`` returns what was last written."""

    def __init__(self, documents: Sequence[Document] | None = None) -> None:
        self.documents: List[Document] = list(documents or [])

    def read(self) -> List[Document]:
        return self.documents

    def write(self, documents: Sequence[Document]) -> None:
        self.documents = list(documents)
