#!/usr/bin/env python3
"""
Unit тесты для engine/edit_pipeline.py
"""

import pytest

from workspace_session_mcp.engine.edit_pipeline import delete_line_range, insert_after_line
from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.models.edits import (
    DeleteLines,
    EditRequest,
    FullReplace,
    InsertAtLine,
    SearchReplaceBlocks,
    SymbolicEdit,
)
from workspace_session_mcp.models.session import Mode
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    NotFound,
    PolicyDenied,
    StaleOrUnread,
    Unsupported,
    UnsupportedLargeFile,
)
from workspace_session_mcp.utils.config import ServiceConfig

BLOCK = "<<<<<<< SEARCH\ntwo\n=======\nTWO\n>>>>>>> REPLACE"


class TestLineHelpers:
    """Тесты для insert_after_line и delete_line_range"""

    def test_insert_at_top(self):
        """Тест вставки в начало файла"""
        assert insert_after_line("a\nb\n", 0, "x") == "x\na\nb\n"

    def test_insert_after_line(self):
        """Тест вставки после строки"""
        assert insert_after_line("a\nb\n", 1, "x\n") == "a\nx\nb\n"

    def test_insert_at_end_without_newline(self):
        """Тест вставки в конец файла без завершающего перевода строки"""
        assert insert_after_line("a\nb", 2, "c") == "a\nb\nc"

    def test_insert_out_of_range(self):
        """Тест вставки за пределами файла"""
        with pytest.raises(InvalidArguments, match=r"\[0, 2\]"):
            insert_after_line("a\nb\n", 3, "x")

    def test_delete_range(self):
        """Тест удаления диапазона строк"""
        assert delete_line_range("a\nb\nc\n", 2, 3) == "a\n"

    def test_delete_invalid_range(self):
        """Тест недопустимого диапазона удаления"""
        with pytest.raises(InvalidArguments):
            delete_line_range("a\nb\n", 2, 5)


class TestEditPipeline:
    """Тесты для EditPipeline через WorkspaceSession"""

    @pytest.fixture
    def three_lines(self, workspace_root):
        """Создает файл a.txt из трёх строк"""
        path = workspace_root / "a.txt"
        path.write_text("one\ntwo\nthree\n")
        return path

    @pytest.mark.asyncio
    async def test_unread_file_is_refused(self, session, three_lines):
        """Тест записи в непрочитанный файл"""
        with pytest.raises(StaleOrUnread) as exc_info:
            await session.write_or_edit("a.txt", 10, BLOCK)

        assert exc_info.value.unread_ranges == [(1, 3)]
        assert "Read these line ranges first: 1-3" in exc_info.value.message
        assert three_lines.read_text() == "one\ntwo\nthree\n"

    @pytest.mark.asyncio
    async def test_partial_read_lists_remaining_lines(self, session, three_lines):
        """Тест частично прочитанного файла"""
        await session.read_files(["a.txt:1-2"])

        with pytest.raises(StaleOrUnread) as exc_info:
            await session.write_or_edit("a.txt", 10, BLOCK)

        assert exc_info.value.unread_ranges == [(3, 3)]

    @pytest.mark.asyncio
    async def test_edit_after_read(self, session, three_lines):
        """Тест правки прочитанного файла с созданием контрольной точки"""
        await session.read_files(["a.txt"])
        report = await session.write_or_edit("a.txt", 10, BLOCK)

        assert three_lines.read_text() == "one\nTWO\nthree\n"
        assert report.path == "a.txt"
        assert report.warnings == []
        assert report.checkpoint_id is not None
        assert session.checkpoints.get(report.checkpoint_id).changes[0].content_before == "one\ntwo\nthree\n"

    @pytest.mark.asyncio
    async def test_consecutive_edits_need_no_reread(self, session, three_lines):
        """Тест, что собственная запись считается прочитанной"""
        await session.read_files(["a.txt"])
        await session.write_or_edit("a.txt", 10, BLOCK)
        await session.write_or_edit("a.txt", 10, "<<<<<<< SEARCH\nTWO\n=======\n2\n>>>>>>> REPLACE")

        assert three_lines.read_text() == "one\n2\nthree\n"

    @pytest.mark.asyncio
    async def test_external_change_is_refused(self, session, three_lines):
        """Тест изменения файла вне сессии после чтения"""
        await session.read_files(["a.txt"])
        three_lines.write_text("one\ntwo\nthree\nfour\n")

        with pytest.raises(StaleOrUnread, match="changed since it was last read"):
            await session.write_or_edit("a.txt", 10, BLOCK)

    @pytest.mark.asyncio
    async def test_new_file_with_full_content(self, session, workspace_root):
        """Тест создания нового файла"""
        report = await session.write_or_edit("pkg/new.txt", 10, "hello\n")

        assert (workspace_root / "pkg" / "new.txt").read_text() == "hello\n"
        assert report.written_bytes == 6

    @pytest.mark.asyncio
    async def test_small_change_needs_blocks(self, session, three_lines):
        """Тест полного содержимого при малом проценте изменений"""
        await session.read_files(["a.txt"])

        with pytest.raises(InvalidArguments, match="search/replace"):
            await session.write_or_edit("a.txt", 20, "completely new\n")

    @pytest.mark.asyncio
    async def test_full_replace(self, session, three_lines):
        """Тест полной перезаписи файла"""
        await session.read_files(["a.txt"])
        await session.write_or_edit("a.txt", 90, "completely new\n")

        assert three_lines.read_text() == "completely new\n"

    @pytest.mark.asyncio
    async def test_unchanged_content_still_checkpointed(self, session, three_lines):
        """Тест записи без изменений"""
        await session.read_files(["a.txt"])
        report = await session.edit(
            EditRequest(path="a.txt", operation=FullReplace(content="one\ntwo\nthree\n"))
        )

        assert report.unchanged is True
        assert report.written_bytes == 0
        assert report.checkpoint_id is not None

    @pytest.mark.asyncio
    async def test_insert_and_delete_lines(self, session, three_lines):
        """Тест построчной вставки и удаления"""
        await session.read_files(["a.txt"])
        await session.edit(EditRequest(path="a.txt", operation=InsertAtLine(line=1, content="x")))
        await session.edit(EditRequest(path="a.txt", operation=DeleteLines(start=3, end=4)))

        assert three_lines.read_text() == "one\nx\n"

    @pytest.mark.asyncio
    async def test_line_edit_on_missing_file(self, session):
        """Тест построчной правки несуществующего файла"""
        with pytest.raises(NotFound):
            await session.edit(EditRequest(path="missing.txt", operation=DeleteLines(start=1, end=1)))

    @pytest.mark.asyncio
    async def test_path_outside_root(self, session):
        """Тест записи за пределами корня"""
        with pytest.raises(PolicyDenied):
            await session.write_or_edit("../escape.txt", 100, "x")

    @pytest.mark.asyncio
    async def test_read_only_mode_refuses_writes(self, session, workspace_root):
        """Тест режима read_only"""
        session.change_mode(Mode.read_only())

        with pytest.raises(PolicyDenied, match="not allowed in read_only mode"):
            await session.write_or_edit("new.txt", 100, "x")
        assert not (workspace_root / "new.txt").exists()

    @pytest.mark.asyncio
    async def test_restricted_globs(self, session, workspace_root):
        """Тест разрешённых шаблонов в режиме restricted"""
        session.change_mode(Mode.restricted(allowed_globs=["src/*.py"]))
        await session.write_or_edit("src/app.py", 100, "print('hi')\n")

        with pytest.raises(PolicyDenied):
            await session.write_or_edit("README.md", 100, "# readme\n")
        assert (workspace_root / "src" / "app.py").exists()

    @pytest.mark.asyncio
    async def test_symbolic_edit_without_bridge(self, session, three_lines):
        """Тест символьной правки без языкового сервера"""
        await session.read_files(["a.txt"])
        operation = SymbolicEdit(location="f", edit_kind="replace_body", content="pass")

        with pytest.raises(Unsupported):
            await session.edit(EditRequest(path="a.txt", operation=operation))

    @pytest.mark.asyncio
    async def test_symbolic_edit_with_bridge(self, config, workspace_root):
        """Тест символьной правки через мост к языковому серверу"""

        class UpperBridge:
            async def apply(self, path, content, edit):
                return content.upper()

        session = WorkspaceSession(config, symbol_bridge=UpperBridge())
        await session.initialize(root=workspace_root)
        (workspace_root / "m.py").write_text("def f():\n    pass\n")
        await session.read_files(["m.py"])
        operation = SymbolicEdit(location="f", edit_kind="replace_body", content="return 1")
        await session.edit(EditRequest(path="m.py", operation=operation))

        assert (workspace_root / "m.py").read_text() == "DEF F():\n    PASS\n"


class TestLargeFileEdits:
    """Тесты правок больших файлов"""

    @pytest.fixture
    def large_config(self, tmp_path):
        """Конфигурация с очень низким порогом большого файла"""
        return ServiceConfig(
            WSMCP_DATA_DIR=tmp_path / "data",
            WSMCP_LOCK_COOLDOWN=0.0,
            WSMCP_LARGE_FILE_BYTES=8,
        )

    @pytest.mark.asyncio
    async def test_streamed_line_edits(self, large_config, workspace_root):
        """Тест построчной правки большого файла"""
        session = WorkspaceSession(large_config)
        await session.initialize(root=workspace_root)
        path = workspace_root / "big.txt"
        path.write_text("1\n2\n3\n4\n5\n")
        await session.read_files(["big.txt"])

        await session.edit(EditRequest(path="big.txt", operation=DeleteLines(start=2, end=3)))
        await session.edit(EditRequest(path="big.txt", operation=InsertAtLine(line=0, content="0\n")))

        assert path.read_text() == "0\n1\n4\n5\n"

    @pytest.mark.asyncio
    async def test_streamed_insert_adds_line_break(self, large_config, workspace_root):
        """Тест вставки без перевода строки в середину большого файла"""
        session = WorkspaceSession(large_config)
        await session.initialize(root=workspace_root)
        path = workspace_root / "big.txt"
        path.write_text("one\ntwo\nthree\n")
        await session.read_files(["big.txt"])

        await session.edit(EditRequest(path="big.txt", operation=InsertAtLine(line=1, content="x")))

        assert path.read_text() == "one\nx\ntwo\nthree\n"

    @pytest.mark.asyncio
    async def test_blocks_unsupported(self, large_config, workspace_root):
        """Тест блоков поиска/замены для большого файла"""
        session = WorkspaceSession(large_config)
        await session.initialize(root=workspace_root)
        (workspace_root / "big.txt").write_text("1\n2\n3\n4\n5\n")
        await session.read_files(["big.txt"])
        operation = SearchReplaceBlocks(text="<<<<<<< SEARCH\n2\n=======\ntwo\n>>>>>>> REPLACE")

        with pytest.raises(UnsupportedLargeFile):
            await session.edit(EditRequest(path="big.txt", operation=operation))
