"""Tests for the storage adapters and repository root discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from palace.errors import StorageFailure
from palace.storage import InMemoryStorage, LocalStorage, StorageAdapter, find_repository_root


class TestLocalStorage:
    @pytest.fixture
    def storage(self) -> LocalStorage:
        return LocalStorage()

    def test_is_storage_adapter(self, storage: LocalStorage):
        assert isinstance(storage, StorageAdapter)

    def test_write_creates_parents(self, storage: LocalStorage, tmp_path: Path):
        path = str(tmp_path / "a" / "b" / "note.md")
        storage.write_file(path, "hello")
        assert storage.read_file(path) == "hello"
        assert not (tmp_path / "a" / "b" / "note.md.tmp").exists()

    def test_read_missing_raises(self, storage: LocalStorage, tmp_path: Path):
        with pytest.raises(StorageFailure) as exc:
            storage.read_file(str(tmp_path / "missing.md"))
        assert exc.value.path.endswith("missing.md")

    def test_read_dir_recursive(self, storage: LocalStorage, tmp_path: Path):
        storage.write_file(str(tmp_path / "x.md"), "")
        storage.write_file(str(tmp_path / "2026" / "10" / "y.md"), "")
        assert storage.read_dir(str(tmp_path)) == ["2026/10/y.md", "x.md"]
        assert storage.read_dir(str(tmp_path / "nope")) == []

    def test_delete_dir_only_when_empty(self, storage: LocalStorage, tmp_path: Path):
        storage.write_file(str(tmp_path / "d" / "f.md"), "")
        storage.delete_dir(str(tmp_path / "d"))
        assert (tmp_path / "d").is_dir()
        storage.delete_file(str(tmp_path / "d" / "f.md"))
        storage.delete_dir(str(tmp_path / "d"))
        assert not (tmp_path / "d").exists()

    def test_delete_missing_file_is_noop(self, storage: LocalStorage, tmp_path: Path):
        storage.delete_file(str(tmp_path / "missing.md"))

    def test_repository_root_from_nested_file(self, storage: LocalStorage, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        (nested / "mod.py").write_text("")
        assert storage.normalize_repository_path(str(nested / "mod.py")) == str(tmp_path.resolve())


class TestInMemoryStorage:
    def test_implicit_directories(self):
        storage = InMemoryStorage({"/repo/src/a.py": "x"})
        assert storage.exists("/repo/src")
        assert storage.exists("/repo/src/a.py")
        assert not storage.exists("/repo/sr")

    def test_read_missing_raises(self):
        with pytest.raises(StorageFailure):
            InMemoryStorage().read_file("/nope")

    def test_read_dir(self):
        storage = InMemoryStorage({"/r/a/b.md": "", "/r/c.md": "", "/rx/d.md": ""})
        assert storage.read_dir("/r") == ["a/b.md", "c.md"]

    def test_files_is_a_copy(self):
        storage = InMemoryStorage()
        storage.files["/x"] = "y"
        assert not storage.exists("/x")


class TestFindRepositoryRoot:
    def test_git_root_preferred(self):
        storage = InMemoryStorage(
            {"/repo/.git/HEAD": "", "/repo/pkg/pyproject.toml": "", "/repo/pkg/src/a.py": ""}
        )
        assert find_repository_root(storage, "/repo/pkg/src") == "/repo"

    def test_project_marker_fallback(self):
        storage = InMemoryStorage({"/work/app/package.json": "{}", "/work/app/lib/a.js": ""})
        assert find_repository_root(storage, "/work/app/lib") == "/work/app"

    def test_path_itself_when_nothing_found(self):
        storage = InMemoryStorage({"/loose/a.txt": ""})
        assert find_repository_root(storage, "/loose") == "/loose"

    def test_normalize_from_file(self):
        storage = InMemoryStorage({"/repo/.git/HEAD": "", "/repo/src/a.py": ""})
        assert storage.normalize_repository_path("/repo/src/a.py") == "/repo"
