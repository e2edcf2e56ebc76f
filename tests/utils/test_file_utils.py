#!/usr/bin/env python3
"""
Unit тесты для file_utils.py и path_utils.py
"""

import os

import pytest

from workspace_session_mcp.models.session import Mode, WorkspaceState
from workspace_session_mcp.tools.base import PolicyDenied
from workspace_session_mcp.tools.utils.file_utils import (
    atomic_write,
    count_file_lines,
    count_lines,
    hash_bytes,
    hash_file,
    split_lines,
    split_path_range,
)
from workspace_session_mcp.utils.path_utils import admit_glob, relative_to_root, resolve_path


class TestLineCounting:
    """Тесты для count_lines и split_lines"""

    @pytest.mark.parametrize(
        "text,expected",
        [("", 0), ("a", 1), ("a\n", 1), ("a\nb", 2), ("a\nb\n", 2), ("\n\n", 2)],
    )
    def test_count_lines(self, text, expected):
        """Тест подсчёта строк"""
        assert count_lines(text) == expected
        assert len(split_lines(text)) == expected

    def test_split_keeps_line_endings(self):
        """Тест сохранения окончаний строк"""
        assert split_lines("a\r\nb") == ["a\r\n", "b"]

    def test_count_file_lines_matches_text(self, tmp_path):
        """Тест подсчёта строк в файле"""
        path = tmp_path / "f.txt"
        path.write_bytes(b"a\nb\nc")

        assert count_file_lines(path) == 3


class TestHashing:
    """Тесты для отпечатков SHA-256"""

    def test_file_and_bytes_agree(self, tmp_path):
        """Тест совпадения хеша файла и его байтов"""
        path = tmp_path / "f.txt"
        path.write_bytes(b"hello\n")

        assert hash_file(path) == hash_bytes(b"hello\n")
        assert len(hash_file(path)) == 64


class TestAtomicWrite:
    """Тесты для atomic_write"""

    def test_creates_parents(self, tmp_path):
        """Тест создания промежуточных каталогов"""
        path = tmp_path / "a" / "b" / "c.txt"

        assert atomic_write(path, "data") == 4
        assert path.read_text() == "data"

    def test_preserves_mode(self, tmp_path):
        """Тест сохранения прав доступа"""
        path = tmp_path / "run.sh"
        path.write_text("old")
        os.chmod(path, 0o755)
        atomic_write(path, "new")

        assert path.stat().st_mode & 0o777 == 0o755
        assert [p.name for p in tmp_path.iterdir()] == ["run.sh"]


class TestSplitPathRange:
    """Тесты для split_path_range"""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("f.py:10-20", ("f.py", 10, 20)),
            ("f.py:10-", ("f.py", 10, None)),
            ("f.py:-5", ("f.py", None, 5)),
            ("f.py", ("f.py", None, None)),
            ("notes:draft", ("notes:draft", None, None)),
            ("f.py:-", ("f.py:-", None, None)),
        ],
    )
    def test_split(self, value, expected):
        """Тест разбора суффикса диапазона строк"""
        assert split_path_range(value) == expected


class TestPathPolicy:
    """Тесты для resolve_path и admit_glob"""

    @pytest.fixture
    def state(self, tmp_path):
        """Создает состояние рабочей области"""
        return WorkspaceState(root=tmp_path)

    def test_relative_path(self, state, tmp_path):
        """Тест относительного пути"""
        resolved = resolve_path(state, "src/app.py")

        assert resolved == tmp_path.resolve() / "src" / "app.py"
        assert relative_to_root(state, resolved) == "src/app.py"

    def test_escape_denied(self, state):
        """Тест выхода за пределы корня"""
        with pytest.raises(PolicyDenied) as exc_info:
            resolve_path(state, "../outside.txt")

        assert exc_info.value.reason == "path outside workspace root"

    def test_symlink_escape_denied(self, state, tmp_path):
        """Тест выхода за пределы корня через символическую ссылку"""
        outside = tmp_path.parent / f"{tmp_path.name}-outside"
        outside.mkdir()
        (tmp_path / "link").symlink_to(outside)

        with pytest.raises(PolicyDenied):
            resolve_path(state, "link/file.txt")

    def test_read_always_admitted(self, state, tmp_path):
        """Тест чтения в режиме read_only"""
        state.mode = Mode.read_only()

        assert admit_glob(state, tmp_path / "a.txt", for_write=False) is True
        assert admit_glob(state, tmp_path / "a.txt", for_write=True) is False
        assert admit_glob(state, tmp_path / "a.txt", for_write=True, readonly_allows_writes=True) is True

    def test_restricted_globs(self, state):
        """Тест разрешённых шаблонов для записи"""
        state.mode = Mode.restricted(allowed_globs=["src/*.py"])

        assert admit_glob(state, state.root / "src" / "app.py", for_write=True) is True
        assert admit_glob(state, state.root / "README.md", for_write=True) is False
