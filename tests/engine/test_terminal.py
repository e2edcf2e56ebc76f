#!/usr/bin/env python3
"""
Интеграционные тесты для engine/terminal.py (нужен bash)
"""

import shutil

import pytest
import pytest_asyncio

from workspace_session_mcp.engine.terminal import TerminalSessionManager
from workspace_session_mcp.models.terminal import SpecialKey, TerminalState
from workspace_session_mcp.tools.base import NoActiveProcess, NotFound, SessionBusy

pytestmark = pytest.mark.skipif(shutil.which("bash") is None, reason="bash is not installed")


class TestTerminalSession:
    """Тесты для TerminalSessionManager с настоящей оболочкой"""

    @pytest_asyncio.fixture
    async def terminals(self):
        """Менеджер терминалов с короткими таймаутами"""
        manager = TerminalSessionManager(shell="bash", command_timeout=10.0, settle=0.3)
        yield manager
        await manager.close_all()

    @pytest.mark.asyncio
    async def test_command_output_and_exit_code(self, terminals, tmp_path):
        """Тест вывода команды и кода завершения"""
        session_id = await terminals.create(tmp_path)
        output = await terminals.execute(session_id, "echo hello")
        status = terminals.status(session_id)

        assert output.strip() == "hello"
        assert status.state == TerminalState.EXITED
        assert status.last_exit_code == 0

        await terminals.execute(session_id, "false")
        assert terminals.status(session_id).last_exit_code == 1

    @pytest.mark.asyncio
    async def test_cwd_persists(self, terminals, tmp_path):
        """Тест сохранения рабочего каталога между командами"""
        (tmp_path / "sub").mkdir()
        session_id = await terminals.create(tmp_path)
        await terminals.execute(session_id, "cd sub")
        output = await terminals.execute(session_id, "pwd")

        assert output.strip().endswith("/sub")
        assert terminals.status(session_id).cwd.endswith("/sub")

    @pytest.mark.asyncio
    async def test_multiline_command(self, terminals, tmp_path):
        """Тест многострочной команды"""
        session_id = await terminals.create(tmp_path)
        output = await terminals.execute(session_id, "echo a\necho b")

        assert output.split() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_timeout_keeps_running_until_interrupted(self, terminals, tmp_path):
        """Тест долгой команды: занятость сессии и прерывание CtrlC"""
        session_id = await terminals.create(tmp_path)
        await terminals.execute(session_id, "sleep 5", timeout=0.3)

        assert terminals.status(session_id).state == TerminalState.RUNNING
        with pytest.raises(SessionBusy):
            await terminals.execute(session_id, "echo next")

        await terminals.send_special_keys(session_id, [SpecialKey.CTRL_C], timeout=3.0)
        status = terminals.status(session_id)
        assert status.state == TerminalState.EXITED
        assert status.last_exit_code == 130

    @pytest.mark.asyncio
    async def test_status_check_waits_for_completion(self, terminals, tmp_path):
        """Тест ожидания завершения через wait"""
        session_id = await terminals.create(tmp_path)
        await terminals.execute(session_id, "sleep 0.5; echo finished", timeout=0.1)
        output = await terminals.wait(session_id, 5.0)

        assert "finished" in output
        assert terminals.status(session_id).state == TerminalState.EXITED

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("python3") is None, reason="python3 is not installed")
    async def test_interactive_program(self, terminals, tmp_path):
        """Тест интерактивной программы: ввод текста и выход по CtrlD"""
        session_id = await terminals.create(tmp_path)
        await terminals.execute(session_id, "python3", interactive=True)

        assert terminals.status(session_id).state == TerminalState.RUNNING

        output = await terminals.send_text(session_id, "print(6 * 7)\n", timeout=3.0)
        assert "42" in output

        await terminals.send_special_keys(session_id, [SpecialKey.CTRL_D], timeout=3.0)
        status = terminals.status(session_id)
        assert status.state == TerminalState.EXITED
        assert status.last_exit_code == 0

    @pytest.mark.asyncio
    async def test_input_without_process(self, terminals, tmp_path):
        """Тест отправки текста без активного процесса"""
        session_id = await terminals.create(tmp_path)

        with pytest.raises(NoActiveProcess):
            await terminals.send_text(session_id, "y\n")

    @pytest.mark.asyncio
    async def test_color_codes_are_stripped(self, terminals, tmp_path):
        """Тест очистки escape-последовательностей в выводе"""
        session_id = await terminals.create(tmp_path)
        output = await terminals.execute(session_id, r"printf '\033[31mred\033[0m\n'")

        assert output.strip() == "red"

    @pytest.mark.asyncio
    async def test_close(self, terminals, tmp_path):
        """Тест закрытия сессии"""
        session_id = await terminals.create(tmp_path)
        session = terminals.get(session_id)
        await terminals.close(session_id)

        assert session.state == TerminalState.DEAD
        with pytest.raises(NotFound):
            terminals.get(session_id)

    @pytest.mark.asyncio
    async def test_long_command_runs_whole(self, terminals, tmp_path):
        """Тест команды длиннее буфера строки терминала"""
        session_id = await terminals.create(tmp_path)
        output = await terminals.execute(session_id, "echo " + "x" * 5000 + " | wc -c")

        assert output.strip() == "5001"
        assert terminals.status(session_id).last_exit_code == 0

        output = await terminals.execute(session_id, "echo short")
        assert output.strip() == "short"
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_zero_wait_returns_immediately(self, terminals, tmp_path):
        """Тест нулевого времени ожидания"""
        session_id = await terminals.create(tmp_path)
        await terminals.execute(session_id, "sleep 1; echo done", timeout=0)

        assert terminals.status(session_id).state == TerminalState.RUNNING
        output = await terminals.wait(session_id, 5.0)
        assert "done" in output
