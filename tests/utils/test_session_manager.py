#!/usr/bin/env python3
"""
Unit тесты для utils/session_manager.py
"""

import asyncio

import pytest

from workspace_session_mcp.engine.locks import FileLockRegistry
from workspace_session_mcp.engine.terminal import TerminalSessionManager
from workspace_session_mcp.utils.session_manager import SessionManager


@pytest.fixture
def manager(config):
    """Менеджер сессий с короткими таймаутами блокировок"""
    return SessionManager(
        config,
        FileLockRegistry(timeout=0.01, cooldown=0),
        TerminalSessionManager(shell="bash", command_timeout=5.0, settle=0.1),
    )


class TestSessionManager:
    """Тесты для SessionManager"""

    def test_same_id_returns_same_session(self, manager):
        """Тест повторного получения сессии по тому же id"""
        first = manager.get_session("client-a")

        assert manager.get_session("client-a") is first
        assert manager.get_session("client-b") is not first
        assert manager.get_session() is manager.get_session("default")

    def test_sessions_share_handles(self, manager):
        """Тест общих реестра блокировок и менеджера терминалов"""
        session = manager.get_session("client-a")

        assert session.locks is manager.locks
        assert session.terminals is manager.terminals

    @pytest.mark.asyncio
    async def test_lookup_drops_idle_lock_entries(self, manager, tmp_path):
        """Тест очистки простаивающих блокировок при получении сессии"""
        path = tmp_path / "a.txt"
        async with manager.locks.writing(path):
            pass
        await asyncio.sleep(0.05)

        manager.get_session()

        assert manager.locks.cleanup_expired() == 0
        assert path not in manager.locks._entries

    @pytest.mark.asyncio
    async def test_close_all(self, manager):
        """Тест закрытия всех сессий"""
        manager.get_session("client-a")

        await manager.close_all()

        assert manager._storage == {}
