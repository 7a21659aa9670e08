"""Tests for LocalPackageReadWriter and PackageBuffer."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from pkgtree.annotations import INDEX_ANNOTATION, PATH_ANNOTATION
from pkgtree.config import ReadWriterConfig
from pkgtree.errors import AnnotationError, DecodeError, DeletionError
from pkgtree.io.buffer import PackageBuffer
from pkgtree.io.readwriter import LocalPackageReadWriter, document_files
from pkgtree.models import Document


def resource(name: str, kind: str = "ConfigMap") -> str:
    return f"apiVersion: v1\nkind: {kind}\nmetadata:\n  name: {name}\n"


def snapshot(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def package(tmp_path: Path) -> Path:
    """A small package with canonically formatted files."""
    root = tmp_path / "pkg"
    (root / "sub").mkdir(parents=True)
    (root / "a.yaml").write_text(resource("a1") + "---\n" + resource("a2"))
    (root / "b.yaml").write_text(resource("b"))
    (root / "sub" / "c.yaml").write_text(resource("c", kind="Service"))
    (root / "README.md").write_text("# not a resource\n")
    return root


def readwriter(root: Path, **options) -> LocalPackageReadWriter:
    return LocalPackageReadWriter(ReadWriterConfig(package_path=root, **options))


class TestRoundTrip:
    """Test read then write cycles."""

    def test_unchanged_write_keeps_bytes(self, package: Path) -> None:
        before = snapshot(package)
        rw = readwriter(package)

        stats = rw.write(rw.read())

        assert snapshot(package) == before
        assert stats.written == 0
        assert stats.skipped == 3
        assert stats.deleted == 0

    def test_set_annotations_cleared_on_write(self, package: Path) -> None:
        """Should not persist annotations stamped by the reader config."""
        before = snapshot(package)
        rw = readwriter(package, set_annotations={"pkgtree/run": "1"})

        documents = rw.read()
        assert all(d.annotations["pkgtree/run"] == "1" for d in documents)
        rw.write(documents)

        assert snapshot(package) == before

    def test_read_write_read_idempotent(self, package: Path) -> None:
        def triples(documents: list[Document]) -> set:
            return {
                (d.annotations[PATH_ANNOTATION], d.annotations[INDEX_ANNOTATION], repr(d.content))
                for d in documents
            }

        rw = readwriter(package)
        first = rw.read()
        rw.write(first)

        assert triples(readwriter(package).read()) == triples(first)

    def test_modified_document_written(self, package: Path) -> None:
        rw = readwriter(package)
        documents = rw.read()
        documents[2].content["data"] = {"key": "value"}

        stats = rw.write(documents)

        assert stats.written == 1
        assert "key: value" in (package / "b.yaml").read_text()

    def test_unchanged_write_keeps_comments_and_scalars(self, tmp_path: Path) -> None:
        """Should leave hand-written files exactly as they were."""
        original = (
            "# owned by team-x\n"
            "apiVersion: v1\n"
            "kind: ConfigMap\n"
            "metadata:\n"
            "  name: app  # inline\n"
            "data:\n"
            "  version: '1.10'\n"
            "  ratio: 1.10\n"
            "  flag: yes\n"
        )
        (tmp_path / "cm.yaml").write_text(original)
        rw = readwriter(tmp_path)

        rw.write(rw.read())

        assert (tmp_path / "cm.yaml").read_text() == original

    def test_modified_document_keeps_comments(self, tmp_path: Path) -> None:
        (tmp_path / "cm.yaml").write_text(
            "# owned by team-x\n"
            "apiVersion: v1\n"
            "kind: ConfigMap\n"
            "metadata:\n"
            "  name: app  # inline\n"
            "data:\n"
            "  ratio: 1.10\n"
            "  flag: yes\n"
        )
        rw = readwriter(tmp_path)
        documents = rw.read()
        documents[0].content["data"]["extra"] = "1"

        rw.write(documents)

        text = (tmp_path / "cm.yaml").read_text()
        assert "# owned by team-x" in text
        assert "# inline" in text
        assert "ratio: 1.10" in text
        assert "flag: yes" in text
        assert "extra: '1'" in text


class TestDeletion:
    """Test deletion of files emptied between read and write."""

    def test_removed_file_deleted(self, package: Path) -> None:
        """Should delete exactly the file whose documents were all removed."""
        rw = readwriter(package)
        documents = [d for d in rw.read() if d.annotations[PATH_ANNOTATION] != "b.yaml"]

        stats = rw.write(documents)

        assert not (package / "b.yaml").exists()
        assert (package / "a.yaml").exists()
        assert (package / "sub" / "c.yaml").exists()
        assert (package / "README.md").exists()
        assert stats.deleted == 1
        assert stats.deleted_files == [package / "b.yaml"]

    def test_partially_removed_file_rewritten(self, package: Path) -> None:
        rw = readwriter(package)
        documents = [d for d in rw.read() if d.name != "a1"]

        rw.write(documents)

        assert (package / "a.yaml").read_text() == resource("a2")

    def test_unread_files_never_deleted(self, package: Path) -> None:
        """Should leave ignored and non-matching files alone."""
        (package / ".krmignore").write_text("hidden.yaml\n")
        (package / "hidden.yaml").write_text(resource("hidden"))
        rw = readwriter(package)
        rw.read()

        rw.write([])

        assert (package / "hidden.yaml").exists()
        assert (package / "README.md").exists()
        assert not (package / "a.yaml").exists()
        assert not (package / "sub" / "c.yaml").exists()

    def test_write_before_read_deletes_nothing(self, package: Path) -> None:
        before = snapshot(package)

        stats = readwriter(package).write([])

        assert snapshot(package) == before
        assert stats.deleted == 0

    def test_failed_read_keeps_known_files(self, package: Path) -> None:
        """Should not let a failed read change what a later write deletes."""
        rw = readwriter(package)
        rw.read()
        (package / "b.yaml").write_text("a: [unclosed\n")

        with pytest.raises(DecodeError):
            rw.read()

        assert rw.known_files == {"a.yaml", "b.yaml", "sub/c.yaml"}

    def test_failed_first_read_deletes_nothing(self, package: Path) -> None:
        (package / "b.yaml").write_text("a: [unclosed\n")
        rw = readwriter(package)

        with pytest.raises(DecodeError):
            rw.read()
        rw.write([])

        assert (package / "a.yaml").exists()
        assert rw.known_files == frozenset()

    def test_no_delete_files(self, package: Path) -> None:
        rw = readwriter(package, no_delete_files=True)
        rw.read()

        rw.write([])

        assert (package / "a.yaml").exists()
        assert rw.known_files == frozenset()

    def test_omit_reader_annotations_disables_tracking(self, package: Path) -> None:
        rw = readwriter(package, omit_reader_annotations=True)

        documents = rw.read()

        assert not rw.tracks_deletions
        assert rw.known_files == frozenset()
        assert all(PATH_ANNOTATION not in d.annotations for d in documents)

    def test_known_files_replaced_after_write(self, package: Path) -> None:
        rw = readwriter(package)
        documents = [d for d in rw.read() if d.annotations[PATH_ANNOTATION] != "b.yaml"]
        rw.write(documents)

        assert rw.known_files == {"a.yaml", "sub/c.yaml"}
        assert rw.write(documents).deleted == 0

    def test_already_missing_file_ignored(self, package: Path) -> None:
        rw = readwriter(package)
        documents = [d for d in rw.read() if d.annotations[PATH_ANNOTATION] != "b.yaml"]
        (package / "b.yaml").unlink()

        stats = rw.write(documents)

        assert stats.deleted == 0

    def test_single_file_package_deleted(self, package: Path) -> None:
        rw = readwriter(package / "b.yaml")
        assert [d.annotations[PATH_ANNOTATION] for d in rw.read()] == ["b.yaml"]

        rw.write([])

        assert not (package / "b.yaml").exists()
        assert (package / "a.yaml").exists()

    def test_non_resource_documents_survive_rewrite(self, tmp_path: Path) -> None:
        """Should keep documents the reader skipped when their file is rewritten."""
        (tmp_path / "x.yaml").write_text(
            resource("a", kind="A") + "---\nfoo: bar\n---\n" + resource("b", kind="B")
        )
        rw = readwriter(tmp_path)
        documents = [d for d in rw.read() if d.kind != "B"]

        rw.write(documents)

        assert (tmp_path / "x.yaml").read_text() == resource("a", kind="A") + "---\nfoo: bar\n"

    def test_stale_file_with_non_resources_kept(self, tmp_path: Path) -> None:
        """Should strip the resources of a stale file instead of deleting it."""
        (tmp_path / "x.yaml").write_text(resource("a") + "---\nfoo: bar\n")
        rw = readwriter(tmp_path)
        rw.read()

        stats = rw.write([])

        assert (tmp_path / "x.yaml").read_text() == "foo: bar\n"
        assert stats.deleted == 0
        assert stats.written == 1

    def test_removed_single_file_package_written_in_place(self, tmp_path: Path) -> None:
        """Should keep writing next to a one-file package after it was removed."""
        target = tmp_path / "cm.yaml"
        target.write_text(resource("cm"))
        rw = readwriter(target)
        documents = rw.read()
        target.unlink()

        rw.write(documents)

        assert target.is_file()
        assert target.read_text() == resource("cm")


class TestDeletionErrors:
    """Test failures while deleting stale files."""

    def test_all_deletions_attempted(self, package: Path) -> None:
        """Should try every stale file and raise the first failure."""
        real_remove = os.remove

        def remove(path):
            if Path(path).name == "a.yaml":
                raise PermissionError("denied")
            real_remove(path)

        rw = readwriter(package)
        rw.read()

        with patch("pkgtree.io.readwriter.os.remove", side_effect=remove):
            with pytest.raises(DeletionError) as excinfo:
                rw.write([])

        assert excinfo.value.path == str(package / "a.yaml")
        assert (package / "a.yaml").exists()
        assert not (package / "b.yaml").exists()
        assert not (package / "sub" / "c.yaml").exists()
        assert rw.known_files == {"a.yaml"}

    def test_missing_path_annotation(self, package: Path) -> None:
        """Should refuse to write documents that lost their provenance."""
        before = snapshot(package)
        rw = readwriter(package)
        documents = rw.read()
        del documents[0].annotations[PATH_ANNOTATION]

        with pytest.raises(AnnotationError):
            rw.write(documents)

        assert snapshot(package) == before


class TestDocumentFiles:
    def test_collects_paths(self) -> None:
        documents = [
            Document(content={}, annotations={PATH_ANNOTATION: "a.yaml"}),
            Document(content={}, annotations={PATH_ANNOTATION: "a.yaml"}),
            Document(content={}, annotations={PATH_ANNOTATION: "b/c.yaml"}),
        ]

        assert document_files(documents) == {"a.yaml", "b/c.yaml"}

    def test_missing_path(self) -> None:
        with pytest.raises(AnnotationError):
            document_files([Document(content={})])


class TestPackageBuffer:
    """Test the in-memory buffer."""

    def test_empty(self) -> None:
        assert PackageBuffer().read() == []

    def test_write_replaces(self) -> None:
        buffer = PackageBuffer([Document(content={"kind": "A"})])
        replacement = [Document(content={"kind": "B"}), Document(content={"kind": "C"})]

        buffer.write(replacement)

        assert [d.kind for d in buffer.read()] == ["B", "C"]

    def test_no_annotation_handling(self) -> None:
        document = Document(content={"kind": "A"})
        buffer = PackageBuffer()

        buffer.write([document])

        assert buffer.read()[0] is document
        assert document.annotations == {}
