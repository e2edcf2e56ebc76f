#!/usr/bin/env python3
"""
Unit тесты для server.py
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import workspace_session_mcp.server as server
from workspace_session_mcp.prompts import get_all_prompts
from workspace_session_mcp.tools.read_files_tool import ReadFilesTool
from workspace_session_mcp.tools.write_tool import WriteOrEditTool


class TestCallTool:
    """Тесты для call_tool"""

    @pytest.fixture
    def context(self):
        """Mock контекста MCP без идентификатора клиента"""
        ctx = MagicMock()
        ctx.client_id = None
        return ctx

    @pytest.fixture
    def manager(self, session):
        """Mock менеджера сессий, возвращающий тестовую сессию"""
        manager = MagicMock()
        manager.get_session = MagicMock(return_value=session)
        with patch.object(server, "get_session_manager", return_value=manager):
            yield manager

    @pytest.mark.asyncio
    async def test_success_response(self, manager, context, workspace_root):
        """Тест успешного ответа и фильтрации None"""
        (workspace_root / "a.txt").write_text("hi\n")
        response = await server.call_tool(
            ReadFilesTool(), context, {"file_paths": ["a.txt"], "show_line_numbers": None}
        )

        assert response == {"status": "success", "result": "a.txt\n```\nhi\n```", "exit_code": 0}
        manager.get_session.assert_called_once_with("default")

    @pytest.mark.asyncio
    async def test_error_response(self, manager, context, workspace_root):
        """Тест ответа с ошибкой и подробностями"""
        (workspace_root / "a.txt").write_text("hi\n")
        response = await server.call_tool(
            WriteOrEditTool(),
            context,
            {"file_path": "a.txt", "percentage_to_change": 100, "text_or_search_replace_blocks": "x"},
        )

        assert response["status"] == "error"
        assert response["kind"] == "StaleOrUnread"
        assert response["exit_code"] == -1
        assert response["details"]["unread_ranges"] == [[1, 1]]

    @pytest.mark.asyncio
    async def test_client_id_selects_session(self, manager, context):
        """Тест выбора сессии по идентификатору клиента"""
        context.client_id = "client-7"
        await server.call_tool(ReadFilesTool(), context, {"file_paths": ["a.txt"]})

        manager.get_session.assert_called_once_with("client-7")

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, manager, context):
        """Тест непредвиденного исключения инструмента"""
        tool = MagicMock()
        tool.get_name.return_value = "broken"
        tool.execute = AsyncMock(side_effect=RuntimeError("kaput"))

        response = await server.call_tool(tool, context, {})

        assert response == {"status": "error", "error": "kaput", "kind": "IoError", "exit_code": 1}


class TestSystemPrompt:
    """Тесты для системного промпта"""

    @pytest.mark.asyncio
    async def test_prompt_includes_mode(self, session):
        """Тест промпта для инициализированной сессии"""
        manager = MagicMock()
        manager.get_session.return_value = session
        with patch.object(server, "get_session_manager", return_value=manager):
            prompt = server.get_system_prompt()

        assert prompt.startswith(get_all_prompts()["base"])
        assert "# Mode: Unrestricted" in prompt

    def test_prompt_before_initialize(self):
        """Тест промпта до инициализации"""
        manager = MagicMock()
        manager.get_session.return_value.is_initialized = False
        with patch.object(server, "get_session_manager", return_value=manager):
            assert server.get_system_prompt() == get_all_prompts()["base"]
