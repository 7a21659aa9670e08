"""Command line interface for pkgtree."""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pkgtree.annotations import PATH_ANNOTATION, get_annotation
from pkgtree.codec.yaml_codec import encode
from pkgtree.config import ReadWriterConfig, load_config
from pkgtree.errors import ConfigurationError, PkgTreeError
from pkgtree.io.reader import LocalPackageReader
from pkgtree.io.readwriter import LocalPackageReadWriter
from pkgtree.io.writer import fold_annotations


console = Console()
app = typer.Typer(help="pkgtree - read and write packages of YAML configuration")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_config(
    path: Optional[Path],
    config_file: Optional[Path],
    globs: Optional[List[str]],
    package_file: Optional[str],
    include_subpackages: bool,
) -> ReadWriterConfig:
    config = load_config(config_file) if config_file is not None else ReadWriterConfig()
    if path is not None:
        config.package_path = path
    if globs:
        config.match_files_glob = list(globs)
    if package_file is not None:
        config.package_file_name = package_file
    if include_subpackages:
        config.include_subpackages = True
    if not config.package_path:
        raise ConfigurationError("must specify package path")
    return config


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except PkgTreeError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False, soft_wrap=True)
        raise typer.Exit(code=1) from exc


PathArgument = typer.Argument(None, help="Package directory or single file.")
ConfigOption = typer.Option(None, "--config", "-c", help="YAML file with reader/writer options")
GlobOption = typer.Option(None, "--glob", "-g", help="File name pattern to read (repeatable)")
PackageFileOption = typer.Option(
    None, "--package-file", help="File name marking a directory as a sub-package"
)
SubpackagesOption = typer.Option(
    False, "--include-subpackages", help="Read documents from sub-packages too"
)
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def cat(
    path: Optional[Path] = PathArgument,
    config_file: Optional[Path] = ConfigOption,
    glob: Optional[List[str]] = GlobOption,
    package_file: Optional[str] = PackageFileOption,
    include_subpackages: bool = SubpackagesOption,
    annotations: bool = typer.Option(
        False, "--annotations", help="Include path and index annotations in the output"
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Print every document of a package as one YAML stream."""
    _setup_logging(verbose)
    with _handle_errors():
        config = _build_config(path, config_file, glob, package_file, include_subpackages)
        documents = LocalPackageReader(config.reader_config()).read()
        folded = [
            fold_annotations(
                document,
                clear=config.set_annotations if not annotations else (),
                keep_reader_annotations=annotations,
            )
            for document in documents
        ]
    typer.echo(encode(folded).decode("utf-8"), nl=False)


@app.command()
def ls(
    path: Optional[Path] = PathArgument,
    config_file: Optional[Path] = ConfigOption,
    glob: Optional[List[str]] = GlobOption,
    package_file: Optional[str] = PackageFileOption,
    include_subpackages: bool = SubpackagesOption,
    verbose: bool = VerboseOption,
) -> None:
    """List the files of a package with their documents."""
    _setup_logging(verbose)
    with _handle_errors():
        config = _build_config(path, config_file, glob, package_file, include_subpackages)
        documents = LocalPackageReader(config.reader_config()).read()

    if not documents:
        console.print("[yellow]No documents found.[/yellow]")
        return

    kinds: Dict[str, Counter] = {}
    for document in documents:
        file_path, _ = get_annotation(document, PATH_ANNOTATION)
        kinds.setdefault(file_path or "<unknown>", Counter())[document.kind or "<none>"] += 1

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("File")
    table.add_column("Documents")
    table.add_column("Kinds")
    for file_path, counter in kinds.items():
        summary = ", ".join(f"{kind} x{count}" for kind, count in counter.items())
        table.add_row(file_path, str(sum(counter.values())), summary)

    console.print(table)


@app.command()
def fmt(
    path: Optional[Path] = PathArgument,
    config_file: Optional[Path] = ConfigOption,
    glob: Optional[List[str]] = GlobOption,
    package_file: Optional[str] = PackageFileOption,
    include_subpackages: bool = SubpackagesOption,
    verbose: bool = VerboseOption,
) -> None:
    """Read a package and write it back with normalized indentation.

    Comments, quoting and key order are kept.
    """
    _setup_logging(verbose)
    with _handle_errors():
        config = _build_config(path, config_file, glob, package_file, include_subpackages)
        readwriter = LocalPackageReadWriter(config)
        stats = readwriter.write(readwriter.read(), reformat=True)
    console.print(
        f"Written: {stats.written}, skipped: {stats.skipped}, deleted: {stats.deleted}",
        soft_wrap=True,
    )


@app.command()
def prune(
    path: Optional[Path] = PathArgument,
    kind: str = typer.Option(..., "--kind", "-k", help="Kind of the documents to remove"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Only remove this name"),
    config_file: Optional[Path] = ConfigOption,
    glob: Optional[List[str]] = GlobOption,
    package_file: Optional[str] = PackageFileOption,
    include_subpackages: bool = SubpackagesOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove documents from a package, deleting files left empty."""
    _setup_logging(verbose)
    with _handle_errors():
        config = _build_config(path, config_file, glob, package_file, include_subpackages)
        readwriter = LocalPackageReadWriter(config)
        documents = readwriter.read()
        kept = [
            document
            for document in documents
            if not (document.kind == kind and (name is None or document.name == name))
        ]
        removed = len(documents) - len(kept)
        if not removed:
            console.print("[yellow]No matching documents.[/yellow]")
            return
        stats = readwriter.write(kept)
    console.print(
        f"Removed {removed} documents. Written: {stats.written}, deleted: {stats.deleted}"
    )
