#!/usr/bin/env python3
"""
Unit тесты для инструментов работы с файлами
"""

import pytest

from workspace_session_mcp.tools.edit_tool import TextEditorTool
from workspace_session_mcp.tools.read_files_tool import ReadFilesTool
from workspace_session_mcp.tools.write_tool import WriteOrEditTool

BLOCK = "<<<<<<< SEARCH\ntwo\n=======\nTWO\n>>>>>>> REPLACE"


@pytest.fixture
def three_lines(workspace_root):
    """Создает файл a.txt из трёх строк"""
    path = workspace_root / "a.txt"
    path.write_text("one\ntwo\nthree\n")
    return path


class TestWriteOrEditTool:
    """Тесты для WriteOrEditTool"""

    @pytest.fixture
    def write_tool(self):
        """Создает экземпляр WriteOrEditTool"""
        return WriteOrEditTool()

    def test_definition(self, write_tool):
        """Тест имени и параметров инструмента"""
        assert write_tool.get_name() == "file_write_or_edit"
        assert [p.name for p in write_tool.get_parameters()] == [
            "file_path",
            "percentage_to_change",
            "text_or_search_replace_blocks",
            "description",
        ]

    @pytest.mark.asyncio
    async def test_missing_session(self, write_tool):
        """Тест вызова без сессии"""
        result = await write_tool.execute({"file_path": "a.txt"})

        assert result.error == "WorkspaceSession not found in arguments."
        assert result.error_code == -1

    @pytest.mark.asyncio
    async def test_unread_file_reports_ranges(self, write_tool, session, three_lines):
        """Тест ошибки StaleOrUnread с диапазонами"""
        result = await write_tool.execute(
            {
                "file_path": "a.txt",
                "percentage_to_change": 10,
                "text_or_search_replace_blocks": BLOCK,
                "_session": session,
            }
        )

        assert result.error_kind == "StaleOrUnread"
        assert result.details["unread_ranges"] == [[1, 3]]
        assert result.output is None

    @pytest.mark.asyncio
    async def test_success(self, write_tool, session, three_lines):
        """Тест успешной правки"""
        await session.read_files(["a.txt"])
        result = await write_tool.execute(
            {
                "file_path": "a.txt",
                "percentage_to_change": 10,
                "text_or_search_replace_blocks": BLOCK,
                "description": "uppercase two",
                "_session": session,
            }
        )

        assert result.error is None
        assert result.output.startswith("Success: wrote 14 bytes to a.txt.\nCheckpoint: ")
        assert session.list_checkpoints()[-1].description == "uppercase two"

    @pytest.mark.asyncio
    async def test_match_failure_details(self, write_tool, session, three_lines):
        """Тест ошибки MatchFailure с лучшей оценкой"""
        await session.read_files(["a.txt"])
        result = await write_tool.execute(
            {
                "file_path": "a.txt",
                "percentage_to_change": 10,
                "text_or_search_replace_blocks": "<<<<<<< SEARCH\nclass Missing(Base):\n    attribute = 1\n=======\nx\n>>>>>>> REPLACE",
                "_session": session,
            }
        )

        assert result.error_kind == "MatchFailure"
        assert "best_score" in result.details
        assert three_lines.read_text() == "one\ntwo\nthree\n"

    @pytest.mark.asyncio
    async def test_missing_parameter(self, write_tool, session):
        """Тест отсутствующего обязательного параметра"""
        result = await write_tool.execute({"file_path": "a.txt", "_session": session})

        assert result.error_kind == "InvalidArguments"
        assert "percentage_to_change" in result.error


class TestReadFilesTool:
    """Тесты для ReadFilesTool"""

    @pytest.mark.asyncio
    async def test_output_format(self, session, three_lines):
        """Тест формата вывода нескольких файлов"""
        result = await ReadFilesTool().execute(
            {"file_paths": ["a.txt:2-2", "missing.txt"], "_session": session}
        )

        assert result.output.startswith("a.txt\n```\ntwo\n```\n\nmissing.txt\n```\nERROR: ")

    @pytest.mark.asyncio
    async def test_empty_paths(self, session):
        """Тест пустого списка файлов"""
        result = await ReadFilesTool().execute({"file_paths": [], "_session": session})

        assert result.error_kind == "InvalidArguments"

    @pytest.mark.asyncio
    async def test_long_file_is_clipped(self, session, workspace_root):
        """Тест обрезки большого файла: хвост не считается прочитанным"""
        path = workspace_root / "big.txt"
        path.write_text(("x" * 9 + "\n") * 3000)
        result = await ReadFilesTool().execute({"file_paths": ["big.txt"], "_session": session})

        assert "continue with `big.txt:1601-`" in result.output
        assert session.knowledge.may_write(path.resolve()) is False


class TestTextEditorTool:
    """Тесты для TextEditorTool"""

    @pytest.fixture
    def edit_tool(self):
        """Создает экземпляр TextEditorTool"""
        return TextEditorTool()

    @pytest.mark.asyncio
    async def test_view_counts_as_read(self, edit_tool, session, three_lines):
        """Тест просмотра файла и последующей вставки"""
        view = await edit_tool.execute({"command": "view", "path": "a.txt", "_session": session})
        insert = await edit_tool.execute(
            {"command": "insert", "path": "a.txt", "insert_line": 3, "new_str": "four", "_session": session}
        )

        assert view.output == (
            "Here's the result of running `cat -n` on a.txt:\n"
            "     1\tone\n     2\ttwo\n     3\tthree\n"
        )
        assert insert.error is None
        assert three_lines.read_text() == "one\ntwo\nthree\nfour"

    @pytest.mark.asyncio
    async def test_view_range(self, edit_tool, session, three_lines):
        """Тест просмотра диапазона строк"""
        result = await edit_tool.execute(
            {"command": "view", "path": "a.txt", "view_range": [2, -1], "_session": session}
        )

        assert result.output.endswith("     2\ttwo\n     3\tthree\n")

    @pytest.mark.asyncio
    async def test_invalid_view_range(self, edit_tool, session, three_lines):
        """Тест недопустимого диапазона просмотра"""
        result = await edit_tool.execute(
            {"command": "view", "path": "a.txt", "view_range": [3, 1], "_session": session}
        )

        assert result.error_kind == "InvalidArguments"

    @pytest.mark.asyncio
    async def test_view_missing_file(self, edit_tool, session):
        """Тест просмотра несуществующего файла"""
        result = await edit_tool.execute({"command": "view", "path": "missing.txt", "_session": session})

        assert result.error_kind == "NotFound"

    @pytest.mark.asyncio
    async def test_create(self, edit_tool, session, workspace_root, three_lines):
        """Тест создания файла и отказа при существующем"""
        created = await edit_tool.execute(
            {"command": "create", "path": "b.txt", "file_text": "bee\n", "_session": session}
        )
        exists = await edit_tool.execute(
            {"command": "create", "path": "a.txt", "file_text": "x", "_session": session}
        )

        assert created.output == "File created successfully at: b.txt"
        assert (workspace_root / "b.txt").read_text() == "bee\n"
        assert exists.error == "File already exists at: a.txt."

    @pytest.mark.asyncio
    async def test_delete_lines(self, edit_tool, session, three_lines):
        """Тест удаления строк"""
        await session.read_files(["a.txt"])
        open_end = await edit_tool.execute(
            {"command": "delete_lines", "path": "a.txt", "view_range": [2, -1], "_session": session}
        )
        result = await edit_tool.execute(
            {"command": "delete_lines", "path": "a.txt", "view_range": [1, 2], "_session": session}
        )

        assert open_end.error_kind == "InvalidArguments"
        assert result.error is None
        assert three_lines.read_text() == "three\n"

    @pytest.mark.asyncio
    async def test_symbolic_unsupported(self, edit_tool, session, three_lines):
        """Тест символьной правки без языкового сервера"""
        await session.read_files(["a.txt"])
        result = await edit_tool.execute(
            {
                "command": "symbolic",
                "path": "a.txt",
                "symbol": "main",
                "symbolic_kind": "replace_body",
                "new_str": "pass",
                "_session": session,
            }
        )

        assert result.error_kind == "Unsupported"

    @pytest.mark.asyncio
    async def test_unknown_command(self, edit_tool, session):
        """Тест неизвестной команды"""
        result = await edit_tool.execute({"command": "str_replace", "path": "a.txt", "_session": session})

        assert result.error_kind == "InvalidArguments"
        assert "Unrecognized command str_replace" in result.error
