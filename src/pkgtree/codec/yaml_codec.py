"""YAML encoding and decoding of document streams.

Uses ruamel.yaml in round-trip mode so comments, quoting, key order and
scalar spelling survive a decode followed by an encode.
"""

from __future__ import annotations

import io
import logging
from typing import IO, Any, List, Mapping, Sequence

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pkgtree.annotations import INDEX_ANNOTATION, set_annotation
from pkgtree.errors import DecodeError
from pkgtree.models import Document

LOGGER = logging.getLogger(__name__)


def _yaml() -> YAML:
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    yaml.width = 4096
    return yaml


def is_resource(content: Any) -> bool:
    """True when ``content`` carries both ``apiVersion`` and ``kind``."""
    return Document(content=content).is_resource


def load_contents(
    stream: IO[bytes] | IO[str] | bytes | str, *, source: str = "<stream>"
) -> List[Any]:
    """Parse every non-empty document of a YAML stream, in stream order."""
    try:
        if isinstance(stream, bytes):
            stream = stream.decode("utf-8")
        contents = list(_yaml().load_all(stream))
    except YAMLError as exc:
        raise DecodeError(source, f"invalid YAML: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DecodeError(source, f"not UTF-8 text: {exc}") from exc
    return [content for content in contents if content is not None]


def decode(
    stream: IO[bytes] | IO[str] | bytes | str,
    *,
    source: str = "<stream>",
    set_annotations: Mapping[str, str] | None = None,
    omit_reader_annotations: bool = False,
    error_if_non_resources: bool = False,
) -> list[Document]:
    """Decode a YAML stream into documents.

    Empty documents are dropped. Documents without ``apiVersion`` and
    ``kind`` are dropped too, unless ``error_if_non_resources`` is set.
    They stay in the file on disk; the writer keeps them in place when it
    rewrites the file. Each kept document gets ``set_annotations`` and,
    unless omitted, its position among the kept documents as the index
    annotation.
    """
    documents: list[Document] = []
    for position, content in enumerate(load_contents(stream, source=source)):
        document = Document(content=content)
        if not document.is_resource:
            if error_if_non_resources:
                raise DecodeError(
                    source, f"document {position} is missing apiVersion or kind"
                )
            LOGGER.debug("Skipping non-resource document %s in %s", position, source)
            continue
        for key, value in (set_annotations or {}).items():
            set_annotation(document, key, value)
        if not omit_reader_annotations:
            set_annotation(document, INDEX_ANNOTATION, str(len(documents)))
        documents.append(document)
    return documents


def encode_contents(contents: Sequence[Any]) -> bytes:
    """Encode raw document contents as one YAML stream."""
    if not contents:
        return b""
    buffer = io.StringIO()
    _yaml().dump_all(list(contents), buffer)
    return buffer.getvalue().encode("utf-8")


def encode(documents: Sequence[Document]) -> bytes:
    """Encode document contents as one YAML stream."""
    return encode_contents([document.content for document in documents])
