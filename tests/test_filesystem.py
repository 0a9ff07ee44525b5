"""
Unit Tests for the Filesystem Abstraction

Test coverage for:
- RootedFileSystem confinement and operations
- MemoryFileSystem behaviour matching the real disk
"""

import pytest

from phaseflow.filesystem import MemoryFileSystem, RootedFileSystem


class TestRootedFileSystem:

    @pytest.fixture
    def fs(self, tmp_path):
        return RootedFileSystem(tmp_path / ".phaseflow")

    def test_write_and_read(self, fs, tmp_path):
        fs.mkdir_all("project")
        fs.write_file("project/state.yaml", b"a: 1\n")
        assert fs.read_file("project/state.yaml") == b"a: 1\n"
        assert (tmp_path / ".phaseflow" / "project" / "state.yaml").exists()

    def test_read_missing(self, fs):
        with pytest.raises(FileNotFoundError):
            fs.read_file("project/state.yaml")

    def test_rename_replaces(self, fs):
        fs.mkdir_all("project")
        fs.write_file("project/state.yaml", b"old")
        fs.write_file("project/state.yaml.tmp", b"new")
        fs.rename("project/state.yaml.tmp", "project/state.yaml")
        assert fs.read_file("project/state.yaml") == b"new"
        with pytest.raises(FileNotFoundError):
            fs.read_file("project/state.yaml.tmp")

    def test_remove(self, fs):
        fs.mkdir_all("project")
        fs.write_file("project/state.yaml", b"x")
        fs.remove("project/state.yaml")
        with pytest.raises(FileNotFoundError):
            fs.remove("project/state.yaml")

    @pytest.mark.parametrize("path", ["../outside.yaml", "project/../../outside.yaml"])
    def test_escape_rejected(self, fs, path):
        with pytest.raises(PermissionError):
            fs.write_file(path, b"x")

    def test_absolute_rejected(self, fs):
        with pytest.raises(PermissionError):
            fs.read_file("/etc/passwd")


class TestMemoryFileSystem:

    def test_write_requires_parent(self):
        fs = MemoryFileSystem()
        with pytest.raises(FileNotFoundError):
            fs.write_file("project/state.yaml", b"x")

    def test_mkdir_all_then_write(self):
        fs = MemoryFileSystem()
        fs.mkdir_all("project/nested")
        fs.write_file("project/nested/file.txt", b"x")
        fs.write_file("project/file.txt", b"y")
        assert fs.read_file("project/nested/file.txt") == b"x"
        assert fs.exists("project/file.txt")

    def test_paths_are_normalized(self):
        fs = MemoryFileSystem()
        fs.mkdir_all("project")
        fs.write_file("./project/state.yaml", b"x")
        assert fs.read_file("project/state.yaml") == b"x"

    def test_rename_missing(self):
        fs = MemoryFileSystem()
        with pytest.raises(FileNotFoundError):
            fs.rename("a", "b")

    def test_rename_overwrites(self):
        fs = MemoryFileSystem()
        fs.write_file("a", b"1")
        fs.write_file("b", b"2")
        fs.rename("a", "b")
        assert fs.files == {"b": b"1"}

    def test_remove_missing(self):
        with pytest.raises(FileNotFoundError):
            MemoryFileSystem().remove("a")

    def test_escape_rejected(self):
        with pytest.raises(PermissionError):
            MemoryFileSystem().read_file("../a")
