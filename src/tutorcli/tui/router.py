"""Input router: decides what each keystroke or submission means.

Views: chat (optionally overlaid by the command palette), help, the three
pickers, and vocabulary practice. Keys are plain strings ("up", "enter",
"escape", "backspace", "space", "tab", "c-c", "c-k", or one printable
character) so the router can be driven without a terminal.

The router also owns the streaming lifecycle for chat turns:

    idle -> streaming -> completed | aborted | errored -> idle
"""

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from tutorcli.adaptive import update_difficulty
from tutorcli.commands import (
    CommandContext,
    CommandRegistry,
    CommandResult,
    default_registry,
    resume_session,
)
from tutorcli.config import ConfigState, ResolvedConfig, TutorConfig, resolve_config, write_config
from tutorcli.conversation import build_request_history
from tutorcli.exceptions import TutorError
from tutorcli.models import (
    ChatMessage,
    Difficulty,
    MainView,
    PaletteSource,
    PaletteView,
    PracticeMode,
    Role,
    Status,
    new_id,
)
from tutorcli.providers import build_provider, format_provider_error
from tutorcli.providers.base import TutorProvider
from tutorcli.storage import TutorStorage
from tutorcli.tui.palette import PaletteItem, build_palette_items, has_arguments
from tutorcli.tui.practice import PracticeController
from tutorcli.tui.state import TutorState, VocabPracticeState
from tutorcli.tui.streaming import GuardedStream, abort_controller

logger = logging.getLogger(__name__)

PICKER_VIEWS = (MainView.MODE_PICKER, MainView.MODELS_PICKER, MainView.SESSION_PICKER)
SESSION_PICKER_LIMIT = 20
EMPTY_REPLY = "(No response from tutor.)"

ProviderFactory = Callable[[ResolvedConfig], "TutorProvider | None"]


class InputRouter:
    """Routes input for one chat screen and implements the command actions.

    Usage:
        router = InputRouter(state, storage, resolved=resolved, provider=provider)
        router.on_input_changed("/")   # opens the slash palette
        router.handle_key("down")
        router.handle_key("enter")
    """

    def __init__(
        self,
        state: TutorState,
        storage: TutorStorage,
        *,
        resolved: ResolvedConfig,
        provider: TutorProvider | None = None,
        registry: CommandRegistry | None = None,
        provider_factory: ProviderFactory = build_provider,
        provider_overrides: dict[str, str | None] | None = None,
        export_dir: Path | None = None,
        on_exit: Callable[[], None] | None = None,
    ) -> None:
        self.state = state
        self.storage = storage
        self.resolved = resolved
        self.provider = provider
        self.registry = registry or default_registry()
        self._provider_factory = provider_factory
        self._overrides = provider_overrides or {}
        self.export_dir = export_dir
        self.on_exit = on_exit
        self.practice = PracticeController(state, storage, self.add_notice)
        self._tasks: set[asyncio.Task[Any]] = set()
        if state.config_state is None:
            state.config_state = ConfigState(config=None, error=None, path=TutorConfig.default_path())
        if resolved.error and state.config_error is None:
            state.config_error = resolved.error
            state.status = Status.ERROR

    # =========================================================================
    # Command actions
    # =========================================================================

    def command_context(self) -> CommandContext:
        assert self.state.config_state is not None
        return CommandContext(
            session_id=self.state.session_id,
            history=list(self.state.history),
            difficulty=self.state.difficulty,
            mode=self.state.mode,
            resolved=self.resolved,
            config_state=self.state.config_state,
            provider=self.provider,
            storage=self.storage,
            export_dir=self.export_dir,
        )

    def reset_session(self, new_session: bool = False) -> None:
        self.state.reset_session(new_session)

    def set_difficulty(self, difficulty: Difficulty) -> None:
        self.state.set_difficulty(difficulty)

    def set_mode(self, mode: PracticeMode) -> None:
        self.state.set_mode(mode)

    def set_session_id(self, session_id: str) -> None:
        self.state.set_session_id(session_id)

    def set_history(self, transform: Callable[[list[ChatMessage]], list[ChatMessage]]) -> None:
        self.state.set_history(transform)

    def set_status(self, status: Status) -> None:
        self.state.set_status(status)

    def set_main_view(self, view: MainView) -> None:
        if view != MainView.CHAT and self.state.palette.open:
            self.state.close_palette()
        self.state.set_main_view(view)

    def set_vocab_practice(self, practice: VocabPracticeState | None) -> None:
        self.state.set_vocab_practice(practice)

    def write_config(self, config: TutorConfig) -> Path:
        assert self.state.config_state is not None
        return write_config(config, self.state.config_state.path)

    def set_config_state(self, config_state: ConfigState) -> None:
        """Adopt a new config and rebuild the provider if settings changed."""
        resolved = resolve_config(config_state.config, **self._overrides)
        changed = (resolved.provider, resolved.model, resolved.api_key) != (
            self.resolved.provider,
            self.resolved.model,
            self.resolved.api_key,
        )
        self.resolved = resolved
        if changed or self.provider is None:
            self.provider = self._provider_factory(resolved)
        self.state.set_config_state(config_state, resolved.error)
        if resolved.error is None and self.state.status == Status.ERROR:
            self.state.set_status(Status.IDLE)

    def add_notice(self, text: str, role: Role = Role.ASSISTANT, error: bool = False) -> None:
        self.state.add_message(ChatMessage(role=role, content=text, notice=True, error=error))

    def open_session_picker(self) -> None:
        try:
            sessions = self.storage.list_sessions(SESSION_PICKER_LIMIT)
        except sqlite3.Error:
            logger.warning("Could not list sessions", exc_info=True)
            sessions = []
        self.state.set_session_items(sessions)
        self.set_main_view(MainView.SESSION_PICKER)

    def open_model_picker(self) -> None:
        self.set_main_view(MainView.MODELS_PICKER)
        self._load_models()

    def _load_models(self) -> None:
        provider = self.provider
        if provider is None:
            self.state.set_model_error(self.resolved.error or "Provider not configured.")
            return
        self.state.set_model_loading(True)

        async def load() -> None:
            try:
                models = await provider.list_models()
            except TutorError as e:
                self.state.set_model_error(format_provider_error(provider.name, e))
                return
            self.state.set_model_items(models)

        self.run_background(load())

    def run_background(self, coro: Coroutine[Any, Any, None]) -> None:
        """Run ``coro`` on the event loop without blocking input."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)
            self.add_notice(f"(System) {exc}", error=True)

    async def wait_background(self) -> None:
        """Wait for outstanding background work (used on shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Text input
    # =========================================================================

    def on_input_changed(self, text: str) -> None:
        """Track the input line and open or close the slash palette."""
        previous = self.state.input
        self.state.set_input(text)
        if self.state.main_view != MainView.CHAT:
            return

        palette = self.state.palette
        if not text.startswith("/") or text.startswith("//"):
            if self.state.slash_dismissed:
                self.state.set_slash_dismissed(False)
            if palette.open and palette.source == PaletteSource.SLASH:
                self.state.close_palette()
            return

        if palette.open:
            if palette.selected_index is not None:
                self.state.set_palette_selection(None)
            return

        if (
            not previous
            and not self.state.slash_dismissed
            and self.state.status not in (Status.ERROR, Status.THINKING)
        ):
            self.state.open_palette(PaletteView.COMMANDS, PaletteSource.SLASH)

    def palette_items(self) -> list[PaletteItem]:
        return build_palette_items(
            self.registry,
            self.command_context(),
            self.state.input,
            self.state.palette.view,
            self.state.model_items,
            self.state.model_loading,
            self.state.model_error,
        )

    def _enter_suppressed(self, text: str) -> bool:
        """Enter does nothing while browsing a bare slash palette."""
        palette = self.state.palette
        if not palette.open or palette.source != PaletteSource.SLASH:
            return False
        if palette.selected_index is not None or has_arguments(text):
            return False
        return self.registry.get(text.strip()) is None

    def submit(self, text: str) -> None:
        """Handle Enter in the chat input."""
        if self.state.main_view != MainView.CHAT:
            return
        # Typed text stays in the input until the tutor is idle.
        if self.state.status == Status.THINKING:
            return
        if text.startswith("//"):
            self._clear_input()
            self.send_chat(text[1:])
            return
        if text.startswith("/"):
            if self._enter_suppressed(text):
                return
            self._clear_input()
            self.run_command(text)
            return
        if not text.strip():
            return
        if self.send_chat(text):
            self._clear_input()

    def _clear_input(self) -> None:
        if self.state.palette.open:
            self.state.close_palette()
        self.state.set_slash_dismissed(False)
        self.state.set_input("")

    def run_command(self, text: str) -> CommandResult | None:
        result = self.registry.dispatch(text, self.command_context(), self)
        if result is not None:
            self.add_notice(result.message, error=result.is_error)
        return result

    # =========================================================================
    # Keys
    # =========================================================================

    def handle_key(self, key: str) -> bool:
        """Handle a non-text key. Returns True if the key was consumed."""
        if key == "c-c":
            self.handle_interrupt()
            return True

        view = self.state.main_view
        if view == MainView.VOCAB_PRACTICE:
            if self.state.vocab_practice is None:
                self.set_main_view(MainView.CHAT)
                return True
            return self.practice.handle_key(key)
        if view in PICKER_VIEWS:
            return self._handle_picker_key(key)
        if view == MainView.HELP:
            if key in ("escape", "enter", "q"):
                self.set_main_view(MainView.CHAT)
            return True

        if self.state.palette.open and self._handle_palette_key(key):
            return True
        if key == "c-k":
            self.state.open_palette(PaletteView.COMMANDS, PaletteSource.EXPLICIT)
            return True
        if key == "enter":
            self.submit(self.state.input)
            return True
        return False

    def handle_interrupt(self) -> None:
        """Ctrl+C: abort the active stream, or exit when idle."""
        if self.state.streaming.is_streaming:
            abort_controller(self.state.streaming.controller)
            return
        if self.on_exit is not None:
            self.on_exit()

    def _handle_palette_key(self, key: str) -> bool:
        palette = self.state.palette
        if key in ("up", "down"):
            count = len(self.palette_items())
            self.state.move_palette_selection(-1 if key == "up" else 1, count)
            return True
        if key == "escape":
            dismissed_slash = palette.source == PaletteSource.SLASH
            self.state.close_palette()
            if dismissed_slash:
                self.state.set_slash_dismissed(True)
            return True
        if key == "tab":
            if palette.view == PaletteView.COMMANDS:
                self.state.set_palette_view(PaletteView.MODELS)
                if not self.state.model_items:
                    self._load_models()
            else:
                self.state.set_palette_view(PaletteView.COMMANDS)
            return True
        if key == "enter" and palette.selected_index is not None:
            items = self.palette_items()
            if 0 <= palette.selected_index < len(items):
                self.activate_palette_item(items[palette.selected_index])
            return True
        if key == "c-k" and palette.source == PaletteSource.EXPLICIT:
            self.state.close_palette()
            return True
        return False

    def activate_palette_item(self, item: PaletteItem) -> None:
        if item.disabled:
            return
        busy = self.state.status == Status.THINKING
        if item.model is not None:
            if busy:
                return
            self.state.close_palette()
            self.apply_model(item.model)
            return
        if item.insert is not None:
            self.state.set_input(item.insert)
            self.state.set_palette_selection(None)
            return
        if item.command is None:
            return
        spec = self.registry.get(item.command)
        if spec is not None and spec.hints is not None:
            self.state.set_input(f"{spec.name} ")
            self.state.set_palette_selection(None)
            return
        if busy:
            return
        self._clear_input()
        self.run_command(item.command)

    # =========================================================================
    # Pickers
    # =========================================================================

    def picker_items(self) -> list[tuple[str, str]]:
        """(label, description) rows for the active picker view."""
        view = self.state.main_view
        if view == MainView.MODE_PICKER:
            return [(m.value, "current" if m == self.state.mode else "") for m in PracticeMode]
        if view == MainView.MODELS_PICKER:
            return [(m, "current" if m == self.resolved.model else "") for m in self.state.model_items]
        if view == MainView.SESSION_PICKER:
            return [
                (s.session_id[:8], s.title or (s.summary or "")[:60] or f"{s.message_count} messages")
                for s in self.state.session_items
            ]
        return []

    def _handle_picker_key(self, key: str) -> bool:
        count = len(self.picker_items())
        if key == "up":
            self.state.move_picker_index(-1, count)
        elif key == "down":
            self.state.move_picker_index(1, count)
        elif key == "escape":
            self.set_main_view(MainView.CHAT)
        elif key == "enter":
            if 0 <= self.state.picker_index < count:
                self._activate_picker(self.state.picker_index)
        return True

    def _activate_picker(self, index: int) -> None:
        view = self.state.main_view
        self.set_main_view(MainView.CHAT)
        if view == MainView.MODE_PICKER:
            mode = list(PracticeMode)[index]
            self.state.set_mode(mode)
            self.add_notice(f"Mode set to {mode.value}.")
        elif view == MainView.MODELS_PICKER:
            self.apply_model(self.state.model_items[index])
        elif view == MainView.SESSION_PICKER:
            record = self.state.session_items[index]
            result = resume_session(record, self.command_context(), self)
            self.add_notice(result.message, error=result.is_error)

    def apply_model(self, model: str) -> None:
        """Switch the chat model and persist it, keeping the stored API key."""
        assert self.state.config_state is not None
        existing = self.state.config_state.config
        config = TutorConfig(
            provider=self.resolved.provider,
            model=model,
            api_key=existing.api_key if existing else None,
            summary_model=existing.summary_model if existing else None,
            log_level=existing.log_level if existing else "warning",
            log_file=existing.log_file if existing else None,
        )
        self._overrides.pop("model", None)
        try:
            path = self.write_config(config)
        except TutorError as e:
            self.add_notice(f"(System) {e.message}", error=True)
            return
        self.set_config_state(ConfigState(config=config, error=None, path=path))
        self.add_notice(f"Model set to {model}.")

    # =========================================================================
    # Streaming lifecycle
    # =========================================================================

    def send_chat(self, text: str) -> bool:
        """Start a chat turn. Returns False if the turn was not started."""
        if self.state.status == Status.THINKING or self.state.streaming.is_streaming:
            return False
        if self.provider is None:
            reason = self.resolved.error or "Provider not configured."
            self.add_notice(
                f"(System) {reason} Run `tutorcli setup` or set the API key environment variable.",
                error=True,
            )
            return False

        user_message = self.state.add_message(ChatMessage(role=Role.USER, content=text))
        self._persist(user_message)
        try:
            self.storage.upsert_session(
                self.state.session_id,
                difficulty=self.state.difficulty.value,
                mode=self.state.mode.value,
            )
        except sqlite3.Error:
            logger.warning("Could not update session", exc_info=True)

        request = build_request_history(self.state.history, self.state.difficulty, self.state.mode)
        message_id = new_id()
        stream = GuardedStream(message_id, self._on_chunk, self._on_complete, self._on_error)
        self.state.start_streaming(message_id, controller=stream, user_text=text)
        try:
            stream.start(self.provider, request)
        except Exception as e:
            logger.warning("Provider failed to start stream", exc_info=True)
            stream.fail(e)
        return True

    def _is_current(self, message_id: str) -> bool:
        streaming = self.state.streaming
        return streaming.is_streaming and streaming.message_id == message_id

    def _on_chunk(self, message_id: str, text: str) -> None:
        if not self._is_current(message_id):
            logger.debug("Dropped chunk for superseded stream", extra={"message_id": message_id})
            return
        self.state.append_streaming_content(text)

    def _on_complete(self, message_id: str, text: str, aborted: bool) -> None:
        if not self._is_current(message_id):
            logger.debug("Dropped completion for superseded stream", extra={"message_id": message_id})
            return
        user_text = self.state.streaming.user_text

        if text:
            reply = self.state.add_message(ChatMessage(role=Role.ASSISTANT, content=text, id=message_id))
            self._persist(reply)
        elif aborted:
            self.add_notice("(System) Response cancelled.")
        else:
            self.add_notice(EMPTY_REPLY)

        self.state.set_difficulty(update_difficulty(self.state.difficulty, user_text))
        if aborted:
            self.state.abort_streaming()
        else:
            self.state.finish_streaming()

    def _on_error(self, message_id: str, error: Exception) -> None:
        if not self._is_current(message_id):
            return
        provider_name = self.provider.name if self.provider else self.resolved.provider.value
        logger.warning("Chat request failed", extra={"provider": provider_name, "error": str(error)})
        self.add_notice(format_provider_error(provider_name, error), error=True)
        self.state.finish_streaming()
        self.state.set_status(Status.ERROR)

    def _persist(self, message: ChatMessage) -> None:
        try:
            self.storage.save_message(
                message.id, self.state.session_id, message.role.value, message.content
            )
        except sqlite3.Error:
            logger.warning("Could not save message", exc_info=True)
            self.add_notice("(System) Could not save message to history.", error=True)
