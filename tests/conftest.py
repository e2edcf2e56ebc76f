"""
Общие фикстуры для тестов
"""

from pathlib import Path

import pytest
import pytest_asyncio

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.utils.config import ServiceConfig


@pytest.fixture(autouse=True)
def isolated_config_file(tmp_path, monkeypatch):
    """Не даёт тестам читать пользовательский config.json и переменные WSMCP_*"""
    monkeypatch.setenv("WSMCP_CONFIG_FILE", str(tmp_path / "no-config.json"))
    for name in ("WSMCP_WORKSPACE", "WSMCP_DATA_DIR", "WSMCP_READ_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    """Создает пустой корень рабочей области"""
    root = tmp_path / "w"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path) -> ServiceConfig:
    """Конфигурация без задержек между операциями над файлом"""
    return ServiceConfig(
        WSMCP_DATA_DIR=tmp_path / "data",
        WSMCP_LOCK_COOLDOWN=0.0,
        WSMCP_LOCK_TIMEOUT=2.0,
        WSMCP_COMMAND_TIMEOUT=10.0,
        WSMCP_INTERACTIVE_SETTLE=0.3,
    )


@pytest_asyncio.fixture
async def session(config, workspace_root):
    """Инициализированная сессия рабочей области в режиме unrestricted"""
    ws = WorkspaceSession(config)
    await ws.initialize(root=workspace_root)
    yield ws
    await ws.close()
