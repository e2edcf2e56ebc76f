#!/usr/bin/env python3
"""
Unit тесты для хранилищ задач и заметок
"""

import pytest

from workspace_session_mcp.engine.documents import validate_document_name
from workspace_session_mcp.engine.memos import MemoStore
from workspace_session_mcp.engine.tasks import TaskStore
from workspace_session_mcp.models.knowledge import FileKnowledge
from workspace_session_mcp.models.task import TaskRecord, TaskStatus, format_task_description
from workspace_session_mcp.tools.base import InvalidArguments, NotFound


class TestValidateDocumentName:
    """Тесты для validate_document_name"""

    @pytest.mark.parametrize("name", ["notes", "build-1.2_x", "a" * 128])
    def test_valid(self, name):
        """Тест допустимых имён"""
        assert validate_document_name(name) == name

    @pytest.mark.parametrize("name", ["", "../etc", "a/b", ".hidden", "a..b", "a" * 129])
    def test_invalid(self, name):
        """Тест недопустимых имён"""
        with pytest.raises(InvalidArguments):
            validate_document_name(name)


class TestTaskStore:
    """Тесты для TaskStore"""

    @pytest.fixture
    def store(self, tmp_path):
        """Хранилище задач во временном каталоге"""
        return TaskStore(tmp_path / "tasks")

    def test_save_and_load(self, store):
        """Тест сохранения и загрузки задачи"""
        task = TaskRecord(workspace_root="/w", description="fix the parser", relevant_files=["a.py"])
        store.save(task)
        loaded = store.load(task.id)

        assert loaded.description == "fix the parser"
        assert loaded.relevant_files == ["a.py"]
        assert loaded.status == TaskStatus.ACTIVE

    def test_list_most_recent_first(self, store):
        """Тест порядка списка задач"""
        older = store.save(TaskRecord(workspace_root="/w", description="older"))
        newer = store.save(TaskRecord(workspace_root="/w", description="newer"))

        assert [t.id for t in store.list_tasks()] == [newer.id, older.id]

    def test_delete(self, store):
        """Тест удаления задачи"""
        task = store.save(TaskRecord(workspace_root="/w"))
        store.delete(task.id)

        with pytest.raises(NotFound):
            store.load(task.id)
        with pytest.raises(NotFound):
            store.delete(task.id)

    def test_corrupted_file_skipped_in_list(self, store):
        """Тест пропуска повреждённого файла в списке"""
        store.save(TaskRecord(workspace_root="/w"))
        (store.directory / "broken.json").write_text("{not json")

        assert len(store.list_tasks()) == 1

    def test_status_transitions(self):
        """Тест смены статуса задачи"""
        task = TaskRecord(workspace_root="/w")
        task.pause()
        assert task.status == TaskStatus.PAUSED
        task.resume()
        assert task.status == TaskStatus.ACTIVE
        task.complete()
        assert task.status == TaskStatus.COMPLETED

    def test_format_description(self):
        """Тест описания задачи в markdown"""
        knowledge = FileKnowledge(path="/w/a.py", total_lines=4, ranges=[(1, 2)], read_operations=3)
        task = TaskRecord(
            workspace_root="/w",
            description="refactor",
            relevant_files=["a.py"],
            file_knowledge={"/w/a.py": knowledge},
        )
        text = format_task_description(task)

        assert text.startswith(f"# Task {task.id}\n")
        assert "**Status:** active" in text
        assert "- a.py" in text
        assert "| /w/a.py | 50.0% | 3 |" in text


class TestMemoStore:
    """Тесты для MemoStore"""

    @pytest.fixture
    def store(self, tmp_path):
        """Хранилище заметок во временном каталоге"""
        return MemoStore(tmp_path / "memos")

    def test_save_and_load(self, store):
        """Тест сохранения и загрузки заметки"""
        store.save("conventions", "use tabs", tags=["style", "style", "team"])
        memo = store.load("conventions")

        assert memo.content == "use tabs"
        assert memo.tags == ["style", "team"]

    def test_save_overwrites(self, store):
        """Тест перезаписи заметки с тем же именем"""
        store.save("todo", "one")
        store.save("todo", "two")

        assert store.load("todo").content == "two"
        assert len(store.list_memos()) == 1

    def test_list_filters_by_all_tags(self, store):
        """Тест фильтрации по тегам"""
        store.save("b", "x", tags=["api", "db"])
        store.save("a", "y", tags=["api"])

        assert [m.name for m in store.list_memos()] == ["a", "b"]
        assert [m.name for m in store.list_memos(["api", "db"])] == ["b"]

    def test_missing_memo(self, store):
        """Тест загрузки несуществующей заметки"""
        with pytest.raises(NotFound, match="Memo not found: nope"):
            store.load("nope")
