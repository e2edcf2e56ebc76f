#!/usr/bin/env python3
"""
Интеграционные тесты для engine/screen.py (нужен GNU screen)
"""

import pytest

from workspace_session_mcp.engine.screen import ScreenMultiplexer
from workspace_session_mcp.tools.base import Unsupported
from workspace_session_mcp.tools.run import run


class TestScreenMultiplexer:
    """Тесты для ScreenMultiplexer"""

    @pytest.mark.asyncio
    @pytest.mark.skipif(not ScreenMultiplexer.available(), reason="screen is not installed")
    async def test_start_and_list(self, tmp_path):
        """Тест запуска, списка и остановки фоновой задачи"""
        multiplexer = ScreenMultiplexer(prefix="wsmcp-test")
        name = await multiplexer.start("sleep 30", tmp_path)
        try:
            assert name.startswith("wsmcp-test.")
            assert name in await multiplexer.list_alive()
        finally:
            await run(f"screen -S {name} -X quit", timeout=10.0)

        assert name not in await multiplexer.list_alive()

    @pytest.mark.asyncio
    async def test_missing_screen(self, tmp_path, monkeypatch):
        """Тест отсутствия screen"""
        monkeypatch.setattr(ScreenMultiplexer, "available", staticmethod(lambda: False))
        multiplexer = ScreenMultiplexer()

        with pytest.raises(Unsupported):
            await multiplexer.start("sleep 1", tmp_path)
        assert await multiplexer.list_alive() == []
