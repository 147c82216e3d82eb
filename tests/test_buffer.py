"""Tests for the headless editor buffer."""

from __future__ import annotations

import pytest

from tidysave.editor.buffer import EditorBuffer, ReadOnlyDocumentError, RegionRestrictedError, TextEdit
from tidysave.editor.document_model import DocumentState
from tidysave.editor.save_hooks import SaveStage


def test_insert_moves_cursor_after_text_and_marks_modified(make_buffer) -> None:
    buffer = make_buffer("hello", cursor=5)

    buffer.insert(" world")

    assert buffer.text == "hello world"
    assert buffer.cursor == 11
    assert buffer.modified is True


def test_noop_edits_leave_document_untouched(make_buffer) -> None:
    buffer = make_buffer("abc")
    version = buffer.document.version_id

    changed = buffer.apply_edits([TextEdit(0, 1, "a")])

    assert changed is False
    assert buffer.modified is False
    assert buffer.document.version_id == version


def test_deleting_before_cursor_shifts_it_left(make_buffer) -> None:
    buffer = make_buffer("foo   \nbar", cursor=6)

    buffer.delete_ranges([(3, 6)])

    assert buffer.text == "foo\nbar"
    assert buffer.cursor == 3
    assert buffer.line_and_column() == (0, 3)


def test_cursor_inside_deleted_span_collapses_to_its_start(make_buffer) -> None:
    buffer = make_buffer("abcdef", cursor=4)

    buffer.delete_ranges([(2, 6)])

    assert buffer.cursor == 2


def test_insertion_at_cursor_does_not_push_it(make_buffer) -> None:
    buffer = make_buffer("ab", cursor=1)

    buffer.apply_edits([TextEdit(1, 1, "X")])

    assert buffer.text == "aXb"
    assert buffer.cursor == 1


def test_overlapping_edits_are_rejected(make_buffer) -> None:
    buffer = make_buffer("abcdef")

    with pytest.raises(ValueError):
        buffer.apply_edits([TextEdit(0, 3), TextEdit(2, 4)])
    assert buffer.text == "abcdef"


def test_read_only_buffer_rejects_edits(make_buffer) -> None:
    buffer = make_buffer("abc  ", read_only=True)

    with pytest.raises(ReadOnlyDocumentError) as excinfo:
        buffer.delete_ranges([(3, 5)])

    assert excinfo.value.document_id == buffer.document_id
    assert buffer.text == "abc  "
    assert buffer.modified is False


def test_line_and_column_reports_zero_based_position(make_buffer) -> None:
    buffer = make_buffer("ab\ncd", cursor=4)

    assert buffer.line_and_column() == (1, 1)
    assert buffer.current_line_bounds() == (3, 5)


class TestMoveToColumn:
    def test_moves_within_line(self, make_buffer) -> None:
        buffer = make_buffer("hello\nhi", cursor=6)

        assert buffer.move_to_column(1) == 1
        assert buffer.cursor == 7

    def test_stops_at_line_end_without_force(self, make_buffer) -> None:
        buffer = make_buffer("hello\nhi", cursor=6)

        assert buffer.move_to_column(5) == 2
        assert buffer.cursor == 8
        assert buffer.text == "hello\nhi"

    def test_force_pads_short_line_with_spaces(self, make_buffer) -> None:
        buffer = make_buffer("hello\nhi\nend", cursor=6)

        assert buffer.move_to_column(5, force=True) == 5
        assert buffer.text == "hello\nhi   \nend"
        assert buffer.cursor == 11
        assert buffer.current_column() == 5

    def test_negative_column_is_rejected(self, make_buffer) -> None:
        buffer = make_buffer("hello")

        with pytest.raises(ValueError):
            buffer.move_to_column(-1)


class TestNarrowing:
    def test_visible_text_and_cursor_follow_restriction(self, make_buffer) -> None:
        buffer = make_buffer("one\ntwo\nthree")

        buffer.narrow(4, 7)

        assert buffer.is_narrowed
        assert buffer.visible_text == "two"
        assert buffer.cursor == 4

    def test_edits_outside_restriction_raise(self, make_buffer) -> None:
        buffer = make_buffer("one\ntwo\nthree")
        buffer.narrow(4, 7)

        with pytest.raises(RegionRestrictedError):
            buffer.delete_ranges([(0, 1)])

    def test_set_text_replaces_only_the_accessible_region(self, make_buffer) -> None:
        buffer = make_buffer("one\ntwo\nthree")
        buffer.narrow(4, 7)

        buffer.set_text("2")

        assert buffer.text == "one\n2\nthree"
        assert buffer.accessible_range == (4, 5)

    def test_without_restriction_restores_edit_adjusted_region(self, make_buffer) -> None:
        buffer = make_buffer("a  \nbb  \nc")
        buffer.narrow(4, 8)

        with buffer.without_restriction():
            assert not buffer.is_narrowed
            buffer.delete_ranges([(1, 3), (6, 8)])

        assert buffer.text == "a\nbb\nc"
        assert buffer.accessible_range == (2, 4)
        assert buffer.visible_text == "bb"

    def test_restriction_is_restored_when_body_raises(self, make_buffer) -> None:
        buffer = make_buffer("one\ntwo\nthree")
        buffer.narrow(4, 7)

        with pytest.raises(RuntimeError):
            with buffer.without_restriction():
                raise RuntimeError("boom")

        assert buffer.accessible_range == (4, 7)

    def test_widen_drops_restriction(self, make_buffer) -> None:
        buffer = make_buffer("one\ntwo")
        buffer.narrow(0, 3)

        buffer.widen()

        assert buffer.visible_text == "one\ntwo"


def test_clone_detached_is_independent_and_unmodified(make_buffer) -> None:
    buffer = make_buffer("abc ", cursor=2)
    buffer.insert("x")
    buffer.hooks.add(SaveStage.BEFORE_SAVE, lambda _b: None)

    clone = buffer.clone_detached()
    assert clone.modified is False
    assert clone.text == buffer.text
    clone.delete_ranges([(0, 1)])

    assert buffer.text == "abxc "
    assert clone.modified is True
    assert clone.hooks.handler_count() == 0
    assert clone.document_id != buffer.document_id


def test_listeners_receive_text_and_cursor_changes(make_buffer) -> None:
    buffer = make_buffer("abc")
    texts: list[str] = []
    cursors: list[int] = []
    buffer.add_text_listener(lambda text, _state: texts.append(text))
    buffer.add_cursor_listener(cursors.append)

    buffer.insert("!", position=3)
    buffer.set_cursor(1)
    buffer.set_cursor(1)

    assert texts == ["abc!"]
    assert cursors[-1] == 1
    assert cursors.count(1) == 1


def test_modified_listeners_fire_only_when_the_flag_changes(make_buffer) -> None:
    buffer = make_buffer("abc")
    flags: list[bool] = []
    buffer.add_modified_listener(flags.append)

    buffer.set_modified(True)
    buffer.set_modified(True)
    buffer.set_modified(False)
    buffer.remove_modified_listener(flags.append)
    buffer.set_modified(True)

    assert flags == [True, False]


def test_buffer_wraps_existing_document_state() -> None:
    state = DocumentState(text="hello", cursor=99)

    buffer = EditorBuffer(state)

    assert buffer.document is state
    assert buffer.cursor == 5


def test_document_snapshot_reports_edit_state(make_buffer) -> None:
    buffer = make_buffer("abc", cursor=1)
    buffer.narrow(0, 2)
    before = buffer.document.snapshot()

    buffer.insert("x")
    after = buffer.document.snapshot()

    assert before["modified"] is False
    assert before["restriction"] == [0, 2]
    assert after["text"] == "axbc"
    assert after["version_id"] == before["version_id"] + 1
    assert after["content_hash"] != before["content_hash"]
    assert "path" not in after
