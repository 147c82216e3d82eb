"""Tests for the per-document save lifecycle controller."""

from __future__ import annotations

import logging

import pytest

from tidysave.editor.buffer import EditorBuffer, ReadOnlyDocumentError
from tidysave.editor.save_hooks import SaveStage
from tidysave.services.settings import CleanupSettings
from tidysave.whitespace.controller import CleanState, SaveLifecycleController, is_buffer_clean
from tidysave.whitespace.strategies import TrailingWhitespaceStrategy


class _DeleteX:
    """Removes every ``x``; has no fast check."""

    name = "delete-x"

    def __init__(self) -> None:
        self.clean_calls = 0

    def clean(self, buffer: EditorBuffer) -> None:
        self.clean_calls += 1
        spans = [(index, index + 1) for index, char in enumerate(buffer.text) if char == "x"]
        if spans:
            buffer.delete_ranges(spans)


class _DeleteXWithCheck(_DeleteX):
    def __init__(self) -> None:
        super().__init__()
        self.check_calls = 0

    def is_clean(self, buffer: EditorBuffer) -> bool:
        self.check_calls += 1
        return "x" not in buffer.text


def _save(buffer: EditorBuffer) -> None:
    """Drive the hooks the way the workspace does around a successful write."""

    buffer.hooks.run(SaveStage.BEFORE_SAVE, buffer)
    buffer.set_modified(False)
    buffer.hooks.run(SaveStage.AFTER_SAVE, buffer)


def _controller(buffer: EditorBuffer, messages: list[str] | None = None, **settings) -> SaveLifecycleController:
    notify = messages.append if messages is not None else None
    controller = SaveLifecycleController(
        buffer,
        CleanupSettings(**settings),
        TrailingWhitespaceStrategy(),
        notify=notify,
    )
    controller.enable()
    return controller


class TestInitialCleanliness:
    def test_state_is_unknown_until_enabled(self, make_buffer, cleanup_settings) -> None:
        controller = SaveLifecycleController(make_buffer("a\n"), cleanup_settings, TrailingWhitespaceStrategy())

        assert controller.clean_state is CleanState.UNKNOWN
        controller.enable()
        assert controller.clean_state is CleanState.CLEAN

    def test_not_computed_when_policy_is_off(self, make_buffer) -> None:
        controller = _controller(make_buffer("a  \n"), only_if_initially_clean=False)

        assert controller.clean_state is CleanState.UNKNOWN

    def test_trailing_blank_lines_are_not_clean(self, make_buffer) -> None:
        controller = _controller(make_buffer("a\n\n\n\n"))

        assert controller.is_already_clean() is False
        assert controller.clean_state is CleanState.DIRTY

    def test_fast_check_is_preferred(self, make_buffer, cleanup_settings) -> None:
        strategy = _DeleteXWithCheck()
        controller = SaveLifecycleController(make_buffer("axb"), cleanup_settings, strategy)

        controller.enable()

        assert controller.clean_state is CleanState.DIRTY
        assert strategy.check_calls == 1
        assert strategy.clean_calls == 0

    def test_fallback_runs_strategy_on_a_copy(self, make_buffer, cleanup_settings) -> None:
        strategy = _DeleteX()
        buffer = make_buffer("axb")
        controller = SaveLifecycleController(buffer, cleanup_settings, strategy)

        controller.enable()

        assert controller.clean_state is CleanState.DIRTY
        assert strategy.clean_calls == 1
        assert buffer.text == "axb"
        assert buffer.modified is False
        assert is_buffer_clean(make_buffer("ab"), strategy) is True

    def test_fallback_ignores_narrowing(self, make_buffer) -> None:
        buffer = make_buffer("x\nab")
        buffer.narrow(2, 4)

        assert is_buffer_clean(buffer, _DeleteX()) is False


class TestSaveBehaviour:
    def test_dirty_document_stays_dirty(self, make_buffer) -> None:
        buffer = make_buffer("foo  \n")
        controller = _controller(buffer)

        _save(buffer)
        buffer.delete_ranges([(3, 5)])
        buffer.insert("bar  ", position=4)
        _save(buffer)

        assert buffer.text == "foo\nbar  "
        assert controller.clean_state is CleanState.DIRTY

    def test_clean_document_stays_clean(self, make_buffer) -> None:
        buffer = make_buffer("foo\n")
        controller = _controller(buffer)

        buffer.insert("bar   ", position=4)
        _save(buffer)

        assert buffer.text == "foo\nbar"
        assert controller.clean_state is CleanState.CLEAN

    def test_unrestricted_policy_always_cleans(self, make_buffer) -> None:
        buffer = make_buffer("foo   \n")
        controller = _controller(buffer, only_if_initially_clean=False)

        _save(buffer)

        assert buffer.text == "foo\n"
        assert controller.clean_state is CleanState.CLEAN

    def test_cleaning_twice_changes_nothing(self, make_buffer) -> None:
        buffer = make_buffer("a \nb\t\n\n")
        controller = _controller(buffer, only_if_initially_clean=False)

        controller.clean()
        version = buffer.document.version_id
        controller.clean()

        assert buffer.text == "a\nb\n"
        assert buffer.document.version_id == version

    def test_cleans_whole_document_while_narrowed(self, make_buffer) -> None:
        buffer = make_buffer("a  \nbb  \nc")
        buffer.narrow(4, 8)
        controller = _controller(buffer, only_if_initially_clean=False)

        controller.on_pre_persist()

        assert buffer.text == "a\nbb\nc"
        assert buffer.is_narrowed
        assert buffer.visible_text == "bb"

    def test_read_only_errors_propagate(self, make_buffer) -> None:
        buffer = make_buffer("foo  \n", read_only=True)
        controller = _controller(buffer, only_if_initially_clean=False)

        with pytest.raises(ReadOnlyDocumentError):
            controller.on_pre_persist()
        assert buffer.text == "foo  \n"

    def test_user_hooks_see_cleaned_text_before_save(self, make_buffer) -> None:
        buffer = make_buffer("foo  \n")
        seen: list[str] = []
        buffer.hooks.add(SaveStage.BEFORE_SAVE, lambda b: seen.append(b.text))
        _controller(buffer, only_if_initially_clean=False)

        _save(buffer)

        assert seen == ["foo\n"]


class TestColumnRestore:
    def test_restores_column_by_padding(self, make_buffer) -> None:
        buffer = make_buffer("hello       \nworld\n", cursor=12)
        controller = _controller(buffer, only_if_initially_clean=False, restore_column=True)

        buffer.hooks.run(SaveStage.BEFORE_SAVE, buffer)
        assert controller.saved_column == 12
        assert buffer.text == "hello\nworld\n"
        assert buffer.current_column() == 5

        buffer.set_modified(False)
        buffer.hooks.run(SaveStage.AFTER_SAVE, buffer)

        assert buffer.text == "hello       \nworld\n"
        assert buffer.current_column() == 12
        assert buffer.modified is False
        assert controller.saved_column is None

    def test_column_is_not_restored_by_default(self, make_buffer) -> None:
        buffer = make_buffer("hello       \nworld\n", cursor=12)
        controller = _controller(buffer, only_if_initially_clean=False)

        _save(buffer)

        assert buffer.text == "hello\nworld\n"
        assert buffer.current_column() == 5
        assert controller.saved_column is None

    def test_restore_failure_is_logged_not_raised(self, make_buffer, caplog: pytest.LogCaptureFixture) -> None:
        buffer = make_buffer("hello   \n", cursor=8)
        controller = _controller(buffer, only_if_initially_clean=False, restore_column=True)
        buffer.hooks.run(SaveStage.BEFORE_SAVE, buffer)
        buffer.set_modified(False)
        buffer.set_read_only(True)

        with caplog.at_level(logging.WARNING, logger="tidysave.whitespace.controller"):
            buffer.hooks.run(SaveStage.AFTER_SAVE, buffer)

        assert "Could not restore column 8" in caplog.text
        assert buffer.document_id in caplog.text
        assert buffer.text == "hello\n"
        assert controller.saved_column is None

    def test_aborted_save_forgets_column(self, make_buffer) -> None:
        buffer = make_buffer("abc\n", cursor=2)
        controller = _controller(buffer, restore_column=True)

        buffer.hooks.run(SaveStage.BEFORE_SAVE, buffer)
        assert controller.saved_column == 2
        buffer.hooks.run(SaveStage.SAVE_ABORTED, buffer)

        assert controller.saved_column is None

    def test_pending_restore_releases_column_on_error(self, make_buffer) -> None:
        buffer = make_buffer("abc\n", cursor=1)
        controller = _controller(buffer)
        controller.on_pre_persist()

        with pytest.raises(RuntimeError):
            with controller.pending_cursor_restore() as column:
                assert column == 1
                raise RuntimeError("boom")

        assert controller.saved_column is None


class TestMessages:
    def test_silent_unless_verbose(self, make_buffer) -> None:
        messages: list[str] = []
        buffer = make_buffer("a  \n")
        _controller(buffer, messages)

        _save(buffer)

        assert messages == []

    def test_reports_clean_run(self, make_buffer) -> None:
        messages: list[str] = []
        buffer = make_buffer("a\n")
        _controller(buffer, messages, verbose=True)

        _save(buffer)

        assert messages == ["whitespace-cleanup: ran delete-trailing-whitespace (reason: document was clean)"]

    def test_reports_skip_for_dirty_document(self, make_buffer) -> None:
        messages: list[str] = []
        buffer = make_buffer("a  \n")
        _controller(buffer, messages, verbose=True)

        _save(buffer)

        assert messages == ["whitespace-cleanup: skipped (reason: document was not clean)"]

    def test_reports_unconditional_run(self, make_buffer) -> None:
        messages: list[str] = []
        buffer = make_buffer("a  \n")
        _controller(buffer, messages, verbose=True, only_if_initially_clean=False, message_prefix="wsc")

        _save(buffer)

        assert messages == ["wsc: ran delete-trailing-whitespace"]

    def test_status_indicator_flags_dirty_documents(self, make_buffer) -> None:
        assert _controller(make_buffer("a\n")).status_indicator() == "WSC"
        assert _controller(make_buffer("a \n")).status_indicator() == "WSC!"


class TestEnableDisable:
    def test_enable_is_idempotent(self, make_buffer) -> None:
        buffer = make_buffer("a\n")
        controller = _controller(buffer)

        controller.enable()

        assert controller.enabled
        for stage in SaveStage:
            assert buffer.hooks.handler_count(stage) == 1

    def test_disable_removes_hooks_and_resets_state(self, make_buffer) -> None:
        buffer = make_buffer("a  \n")
        controller = _controller(buffer)
        controller.on_pre_persist()

        controller.disable()

        assert not controller.enabled
        assert buffer.hooks.handler_count() == 0
        assert controller.clean_state is CleanState.UNKNOWN
        assert controller.saved_column is None

    def test_re_enabling_recomputes_cleanliness(self, make_buffer) -> None:
        buffer = make_buffer("a  \n")
        controller = _controller(buffer)
        assert controller.clean_state is CleanState.DIRTY

        controller.disable()
        buffer.delete_ranges([(1, 3)])
        controller.enable()

        assert controller.clean_state is CleanState.CLEAN
