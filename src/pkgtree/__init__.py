"""Read and write packages of YAML configuration documents."""

from pkgtree.config import ReaderConfig, ReadWriterConfig, load_config
from pkgtree.io.buffer import PackageBuffer
from pkgtree.io.reader import LocalPackageReader
from pkgtree.io.readwriter import LocalPackageReadWriter
from pkgtree.io.writer import LocalPackageWriter
from pkgtree.models import Document, WriteStats

__version__ = "0.1.0"

__all__ = [
    "Document",
    "LocalPackageReadWriter",
    "LocalPackageReader",
    "LocalPackageWriter",
    "PackageBuffer",
    "ReadWriterConfig",
    "ReaderConfig",
    "WriteStats",
    "load_config",
]
