"""Tests for the session state store."""

from __future__ import annotations

import pytest

from tutorcli.exceptions import StreamingError
from tutorcli.models import (
    ChatMessage,
    MainView,
    PaletteSource,
    PaletteView,
    PracticeKind,
    Role,
    Status,
)
from tutorcli.tui.state import PracticeItem, TutorState, VocabPracticeState


def _practice(count=2, kind=PracticeKind.FLASHCARD):
    items = [PracticeItem(id=i, word=f"word{i}", definition=f"meaning {i}") for i in range(count)]
    return VocabPracticeState(kind=kind, items=items)


class TestTutorState:
    def test_defaults(self):
        """A fresh state is idle in the chat view with an empty history."""
        state = TutorState()
        assert state.status == Status.IDLE
        assert state.main_view == MainView.CHAT
        assert state.history == []
        assert not state.palette.open
        assert state.palette.selected_index is None
        assert len(state.session_id) == 36

    def test_mutations_notify(self):
        """Every setter fires the change callback."""
        calls = []
        state = TutorState(on_state_change=lambda: calls.append(1))
        state.set_input("hi")
        state.set_status(Status.ERROR)
        state.add_message(ChatMessage(role=Role.USER, content="hi"))
        assert len(calls) == 3

    def test_add_message_assigns_id(self):
        """Messages without an id get one."""
        state = TutorState()
        message = state.add_message(ChatMessage(role=Role.USER, content="hi", id=""))
        assert message.id

    def test_set_history_transform(self):
        """set_history replaces history with the transform's result."""
        state = TutorState()
        state.add_message(ChatMessage(role=Role.USER, content="a"))
        state.add_message(ChatMessage(role=Role.USER, content="b"))
        state.set_history(lambda h: h[1:])
        assert [m.content for m in state.history] == ["b"]

    def test_reset_session(self):
        """Clearing keeps the session id unless a new session is requested."""
        state = TutorState()
        original = state.session_id
        state.add_message(ChatMessage(role=Role.USER, content="a"))
        state.reset_session()
        assert state.history == []
        assert state.session_id == original
        state.reset_session(new_session=True)
        assert state.session_id != original


class TestStreamingState:
    def test_start_and_finish(self):
        """Starting sets thinking; finishing returns to idle."""
        state = TutorState()
        state.start_streaming("m1", user_text="hello")
        assert state.streaming.is_streaming
        assert state.streaming.user_text == "hello"
        assert state.status == Status.THINKING
        state.append_streaming_content("Hi")
        state.append_streaming_content(" there")
        assert state.streaming.accumulated_content == "Hi there"
        state.finish_streaming()
        assert not state.streaming.is_streaming
        assert state.streaming.accumulated_content == ""
        assert state.status == Status.IDLE

    def test_only_one_stream(self):
        """A second stream cannot start while one is active."""
        state = TutorState()
        state.start_streaming("m1")
        with pytest.raises(StreamingError):
            state.start_streaming("m2")

    def test_append_when_idle_is_ignored(self):
        """Chunks outside a stream are dropped."""
        state = TutorState()
        state.append_streaming_content("stray")
        assert state.streaming.accumulated_content == ""

    def test_abort_resets(self):
        """Abort clears the stream and returns to idle."""
        state = TutorState()
        state.start_streaming("m1", controller=object())
        state.abort_streaming()
        assert state.streaming.controller is None
        assert state.status == Status.IDLE


class TestPaletteState:
    def test_open_resets_selection(self):
        """Opening always starts with nothing highlighted."""
        state = TutorState()
        state.open_palette(PaletteView.COMMANDS, PaletteSource.SLASH)
        state.move_palette_selection(1, 3)
        state.close_palette()
        state.open_palette()
        assert state.palette.selected_index is None
        assert state.palette.source == PaletteSource.EXPLICIT

    def test_selection_cycles_through_none(self):
        """Down from the last row and up from the first both land on None."""
        state = TutorState()
        state.open_palette()
        state.move_palette_selection(-1, 3)
        assert state.palette.selected_index == 2
        state.move_palette_selection(1, 3)
        assert state.palette.selected_index is None
        state.move_palette_selection(1, 3)
        assert state.palette.selected_index == 0
        state.move_palette_selection(-1, 3)
        assert state.palette.selected_index is None

    def test_empty_list_has_no_selection(self):
        """With no rows the selection stays empty."""
        state = TutorState()
        state.open_palette()
        state.move_palette_selection(1, 0)
        assert state.palette.selected_index is None

    def test_view_change_resets_selection(self):
        """Switching views clears the highlight."""
        state = TutorState()
        state.open_palette()
        state.move_palette_selection(1, 3)
        state.set_palette_view(PaletteView.MODELS)
        assert state.palette.selected_index is None


class TestPickerState:
    def test_main_view_resets_index(self):
        """Changing view starts the picker at the top."""
        state = TutorState()
        state.set_picker_index(3)
        state.set_main_view(MainView.MODE_PICKER)
        assert state.picker_index == 0

    def test_picker_wraps(self):
        """The picker cycles in both directions."""
        state = TutorState()
        state.move_picker_index(-1, 4)
        assert state.picker_index == 3
        state.move_picker_index(1, 4)
        assert state.picker_index == 0

    def test_picker_with_no_items(self):
        """An empty picker keeps the index at zero."""
        state = TutorState()
        state.move_picker_index(1, 0)
        assert state.picker_index == 0


class TestModelItems:
    def test_loading_then_items(self):
        """Items clear the loading flag and any error."""
        state = TutorState()
        state.set_model_error("old")
        state.set_model_loading(True)
        assert state.model_error is None
        state.set_model_items(["a", "b"])
        assert not state.model_loading
        assert state.model_items == ["a", "b"]

    def test_error_clears_loading(self):
        """An error ends loading."""
        state = TutorState()
        state.set_model_loading(True)
        state.set_model_error("failed")
        assert not state.model_loading
        assert state.model_error == "failed"


class TestVocabPracticeState:
    def test_noop_without_practice(self):
        """Practice mutations do nothing when no run is active."""
        state = TutorState()
        state.vocab_practice_answer(True, "x")
        state.vocab_practice_next()
        state.vocab_practice_set_input("abc")
        state.end_vocab_practice()
        assert state.vocab_practice is None

    def test_answer_scores_once(self):
        """The first answer for an item counts; later ones are ignored."""
        state = TutorState()
        state.set_vocab_practice(_practice())
        state.vocab_practice_answer(True, "Correct!")
        state.vocab_practice_answer(False, "Wrong")
        practice = state.vocab_practice
        assert practice.score.correct == 1
        assert practice.score.incorrect == 0
        assert practice.feedback.message == "Correct!"
        assert practice.show_answer

    def test_next_resets_item_fields(self):
        """Moving on clears the input, selection and feedback."""
        state = TutorState()
        state.set_vocab_practice(_practice())
        state.vocab_practice_set_input("wor")
        state.vocab_practice_select_option(2)
        state.vocab_practice_answer(False, "no")
        state.vocab_practice_next()
        practice = state.vocab_practice
        assert practice.current_index == 1
        assert practice.user_input == ""
        assert practice.selected_option is None
        assert practice.feedback is None
        assert not practice.show_answer

    def test_next_after_last_returns_to_chat(self):
        """Advancing past the last item ends practice."""
        state = TutorState()
        state.set_vocab_practice(_practice(count=1))
        state.set_main_view(MainView.VOCAB_PRACTICE)
        state.vocab_practice_next()
        assert state.vocab_practice is None
        assert state.main_view == MainView.CHAT
