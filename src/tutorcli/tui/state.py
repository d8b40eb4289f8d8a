"""Session state store for the tutor TUI.

Every mutation goes through a named method on ``TutorState`` and ends with
``notify_change()``, which the prompt_toolkit app hooks to ``invalidate``.
Views read fields directly but never assign them.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# NOTE: no __future__.annotations here; tests construct these dataclasses
# directly and rely on real (non-string) annotations.
from tutorcli.config import ConfigState
from tutorcli.exceptions import StreamingError
from tutorcli.models import (
    ChatMessage,
    Difficulty,
    MainView,
    PaletteSource,
    PaletteView,
    PracticeKind,
    PracticeMode,
    Status,
)
from tutorcli.storage import SessionRecord


def _new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class StreamingState:
    """In-flight provider stream. At most one exists at a time."""

    is_streaming: bool = False
    accumulated_content: str = ""
    message_id: str | None = None
    controller: Any = None
    # User text that triggered this turn; drives the difficulty update.
    user_text: str = ""


@dataclass
class CommandPaletteState:
    """Palette overlay. ``selected_index`` None means nothing highlighted."""

    open: bool = False
    selected_index: int | None = None
    view: PaletteView = PaletteView.COMMANDS
    source: PaletteSource | None = None


@dataclass
class PracticeItem:
    """One word in a practice round."""

    id: int
    word: str
    definition: str | None = None
    mc_options: list[str] = field(default_factory=list)
    mc_correct_index: int = -1


@dataclass
class PracticeScore:
    correct: int = 0
    incorrect: int = 0

    @property
    def answered(self) -> int:
        return self.correct + self.incorrect


@dataclass
class PracticeFeedback:
    correct: bool
    message: str


@dataclass
class VocabPracticeState:
    """Transient state for one /vocab practice run."""

    kind: PracticeKind
    items: list[PracticeItem]
    current_index: int = 0
    show_answer: bool = False
    score: PracticeScore = field(default_factory=PracticeScore)
    user_input: str = ""
    selected_option: int | None = None
    feedback: PracticeFeedback | None = None
    collection: str | None = None

    @property
    def current(self) -> PracticeItem | None:
        if 0 <= self.current_index < len(self.items):
            return self.items[self.current_index]
        return None

    @property
    def is_last(self) -> bool:
        return self.current_index >= len(self.items) - 1


@dataclass
class TutorState:
    """Single source of truth for the chat screen."""

    session_id: str = field(default_factory=_new_session_id)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    history: list[ChatMessage] = field(default_factory=list)
    input: str = ""
    status: Status = Status.IDLE
    difficulty: Difficulty = Difficulty.BEGINNER
    mode: PracticeMode = PracticeMode.GENERAL

    config_state: ConfigState | None = None
    config_error: str | None = None

    main_view: MainView = MainView.CHAT
    picker_index: int = 0

    palette: CommandPaletteState = field(default_factory=CommandPaletteState)
    slash_dismissed: bool = False

    streaming: StreamingState = field(default_factory=StreamingState)

    model_items: list[str] = field(default_factory=list)
    model_loading: bool = False
    model_error: str | None = None

    session_items: list[SessionRecord] = field(default_factory=list)

    vocab_practice: VocabPracticeState | None = None

    on_state_change: Callable[[], None] | None = None

    def notify_change(self) -> None:
        """Notify listeners of state change."""
        if self.on_state_change:
            self.on_state_change()

    # -- Conversation -----------------------------------------------------

    def add_message(self, message: ChatMessage) -> ChatMessage:
        if not message.id:
            message.id = str(uuid.uuid4())
        self.history.append(message)
        self.notify_change()
        return message

    def set_history(self, transform: Callable[[list[ChatMessage]], list[ChatMessage]]) -> None:
        history = list(transform(list(self.history)))
        for message in history:
            if not message.id:
                message.id = str(uuid.uuid4())
        self.history = history
        self.notify_change()

    def reset_session(self, new_session: bool = False) -> None:
        """Clear history in memory; persisted rows are left alone."""
        self.history = []
        if new_session:
            self.session_id = _new_session_id()
            self.created_at = datetime.now(timezone.utc).isoformat()
        self.notify_change()

    def set_session_id(self, session_id: str) -> None:
        self.session_id = session_id
        self.notify_change()

    def set_status(self, status: Status) -> None:
        self.status = status
        self.notify_change()

    def set_difficulty(self, difficulty: Difficulty) -> None:
        self.difficulty = difficulty
        self.notify_change()

    def set_mode(self, mode: PracticeMode) -> None:
        self.mode = mode
        self.notify_change()

    def set_input(self, text: str) -> None:
        self.input = text
        self.notify_change()

    def set_config_state(self, config_state: ConfigState, error: str | None = None) -> None:
        self.config_state = config_state
        self.config_error = error
        self.notify_change()

    # -- Views ------------------------------------------------------------

    def set_main_view(self, view: MainView) -> None:
        self.main_view = view
        self.picker_index = 0
        self.notify_change()

    def move_picker_index(self, direction: int, count: int) -> None:
        """Cycle the picker highlight; an empty list acts as one slot."""
        self.picker_index = (self.picker_index + direction) % max(count, 1)
        self.notify_change()

    def set_picker_index(self, index: int) -> None:
        self.picker_index = index
        self.notify_change()

    # -- Streaming --------------------------------------------------------

    def start_streaming(self, message_id: str, controller: Any = None, user_text: str = "") -> None:
        if self.streaming.is_streaming:
            raise StreamingError(
                "A stream is already active",
                {"active": self.streaming.message_id, "requested": message_id},
            )
        self.streaming = StreamingState(
            is_streaming=True,
            message_id=message_id,
            controller=controller,
            user_text=user_text,
        )
        self.status = Status.THINKING
        self.notify_change()

    def append_streaming_content(self, chunk: str) -> None:
        """Append a chunk; ignored when no stream is active."""
        if not self.streaming.is_streaming:
            return
        self.streaming.accumulated_content += chunk
        self.notify_change()

    def finish_streaming(self) -> None:
        self.streaming = StreamingState()
        self.status = Status.IDLE
        self.notify_change()

    def abort_streaming(self) -> None:
        self.streaming = StreamingState()
        self.status = Status.IDLE
        self.notify_change()

    # -- Palette ----------------------------------------------------------

    def open_palette(
        self,
        view: PaletteView = PaletteView.COMMANDS,
        source: PaletteSource | None = PaletteSource.EXPLICIT,
    ) -> None:
        self.palette = CommandPaletteState(open=True, selected_index=None, view=view, source=source)
        self.notify_change()

    def close_palette(self) -> None:
        self.palette = CommandPaletteState()
        self.notify_change()

    def set_palette_view(self, view: PaletteView) -> None:
        self.palette.view = view
        self.palette.selected_index = None
        self.notify_change()

    def move_palette_selection(self, direction: int, count: int) -> None:
        """Move the highlight, passing through "no selection" at both ends."""
        current = self.palette.selected_index
        if count <= 0:
            new_index = None
        elif current is None:
            new_index = 0 if direction > 0 else count - 1
        else:
            candidate = current + direction
            new_index = candidate if 0 <= candidate < count else None
        self.palette.selected_index = new_index
        self.notify_change()

    def set_palette_selection(self, index: int | None) -> None:
        self.palette.selected_index = index
        self.notify_change()

    def set_slash_dismissed(self, dismissed: bool) -> None:
        self.slash_dismissed = dismissed
        self.notify_change()

    # -- Models and sessions ----------------------------------------------

    def set_model_items(self, items: list[str]) -> None:
        self.model_items = list(items)
        self.model_loading = False
        self.model_error = None
        self.notify_change()

    def set_model_loading(self, loading: bool) -> None:
        self.model_loading = loading
        if loading:
            self.model_error = None
        self.notify_change()

    def set_model_error(self, error: str | None) -> None:
        self.model_error = error
        self.model_loading = False
        self.notify_change()

    def set_session_items(self, items: list[SessionRecord]) -> None:
        self.session_items = list(items)
        self.notify_change()

    # -- Vocabulary practice ----------------------------------------------
    # All of these are no-ops while no practice run is active.

    def set_vocab_practice(self, practice: VocabPracticeState | None) -> None:
        self.vocab_practice = practice
        self.notify_change()

    def vocab_practice_toggle_answer(self) -> None:
        if self.vocab_practice is None:
            return
        self.vocab_practice.show_answer = not self.vocab_practice.show_answer
        self.notify_change()

    def vocab_practice_answer(self, correct: bool, message: str = "") -> None:
        """Score the current item once; later answers for it are ignored."""
        practice = self.vocab_practice
        if practice is None or practice.feedback is not None:
            return
        if correct:
            practice.score.correct += 1
        else:
            practice.score.incorrect += 1
        practice.feedback = PracticeFeedback(correct=correct, message=message)
        practice.show_answer = True
        self.notify_change()

    def vocab_practice_set_input(self, text: str) -> None:
        if self.vocab_practice is None:
            return
        self.vocab_practice.user_input = text
        self.notify_change()

    def vocab_practice_select_option(self, index: int | None) -> None:
        if self.vocab_practice is None:
            return
        self.vocab_practice.selected_option = index
        self.notify_change()

    def vocab_practice_next(self) -> None:
        """Advance to the next item, or end practice after the last one."""
        practice = self.vocab_practice
        if practice is None:
            return
        if practice.is_last:
            self.vocab_practice = None
            self.main_view = MainView.CHAT
        else:
            practice.current_index += 1
            practice.show_answer = False
            practice.user_input = ""
            practice.selected_option = None
            practice.feedback = None
        self.notify_change()

    def end_vocab_practice(self) -> None:
        if self.vocab_practice is None:
            return
        self.vocab_practice = None
        self.main_view = MainView.CHAT
        self.notify_change()
