#!/usr/bin/env python3
"""
Unit тесты для models/knowledge.py
"""

import pytest

from workspace_session_mcp.models.knowledge import FileKnowledge, merge_range


class TestMergeRange:
    """Тесты для merge_range"""

    def test_insert_into_empty(self):
        """Тест добавления диапазона в пустой список"""
        assert merge_range([], (3, 5)) == [(3, 5)]

    def test_adjacent_ranges_are_merged(self):
        """Тест объединения соседних диапазонов"""
        assert merge_range([(1, 3)], (4, 6)) == [(1, 6)]

    def test_disjoint_range_keeps_order(self):
        """Тест вставки непересекающегося диапазона с сохранением порядка"""
        assert merge_range([(1, 2), (10, 12)], (5, 6)) == [(1, 2), (5, 6), (10, 12)]

    def test_bridging_range_absorbs_neighbours(self):
        """Тест диапазона, соединяющего два существующих"""
        assert merge_range([(1, 2), (5, 6)], (3, 4)) == [(1, 6)]

    def test_overlapping_ranges(self):
        """Тест перекрывающихся диапазонов"""
        assert merge_range([(1, 5), (8, 9), (20, 30)], (4, 10)) == [(1, 10), (20, 30)]

    def test_reversed_range_rejected(self):
        """Тест диапазона с перепутанными границами"""
        with pytest.raises(ValueError):
            merge_range([(1, 2)], (6, 4))


class TestFileKnowledge:
    """Тесты для FileKnowledge"""

    def test_partial_read(self):
        """Тест процента прочитанного и непрочитанных диапазонов"""
        knowledge = FileKnowledge(path="a.txt", total_lines=10)
        knowledge.add_range(1, 5)

        assert knowledge.percentage_read() == 50.0
        assert knowledge.unread_ranges() == [(6, 10)]

    def test_range_is_clamped_to_file(self):
        """Тест ограничения диапазона длиной файла"""
        knowledge = FileKnowledge(path="a.txt", total_lines=10)
        knowledge.add_range(1, 5)
        knowledge.add_range(8, 20)

        assert knowledge.ranges == [(1, 5), (8, 10)]
        assert knowledge.unread_ranges() == [(6, 7)]

    def test_empty_file_is_fully_read(self):
        """Тест пустого файла"""
        knowledge = FileKnowledge(path="empty.txt", total_lines=0)
        knowledge.add_range(1, 1)

        assert knowledge.ranges == []
        assert knowledge.percentage_read() == 100.0
        assert knowledge.unread_ranges() == []

    def test_invalidate_requires_full_reread(self):
        """Тест сброса знаний после изменения файла"""
        knowledge = FileKnowledge(path="a.txt", total_lines=4)
        knowledge.add_range(1, 4)
        knowledge.invalidate()

        assert knowledge.modified is True
        assert knowledge.ranges == []
        assert knowledge.unread_ranges() == [(1, 4)]
