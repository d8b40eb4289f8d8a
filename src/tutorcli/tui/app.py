"""Main TUI application for the tutor."""

import asyncio
import logging
from dataclasses import dataclass

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.document import Document
from prompt_toolkit.filters import Condition
from prompt_toolkit.formatted_text import ANSI, FormattedText
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import (
    ConditionalContainer,
    Float,
    FloatContainer,
    HSplit,
    VSplit,
    Window,
)
from prompt_toolkit.layout.controls import BufferControl, FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.styles import Style
from rich.console import Group, RenderableType
from rich.text import Text

# NOTE: no __future__.annotations; see tui/state.py.
from tutorcli.config import ConfigState, ResolvedConfig
from tutorcli.models import MainView, PaletteView, Status
from tutorcli.providers.base import TutorProvider
from tutorcli.storage import TutorStorage
from tutorcli.tui.render import (
    render_header,
    render_help_panel,
    render_messages,
    render_palette,
    render_picker,
    render_practice,
    render_status_line,
    render_streaming,
    render_to_ansi,
)
from tutorcli.tui.router import PICKER_VIEWS, InputRouter
from tutorcli.tui.state import TutorState

logger = logging.getLogger(__name__)

TUI_STYLE = Style.from_dict(
    {
        "prompt": "bold fg:#9ece6a",
        "input_hint": "fg:#9ca3af italic",
        "status": "bg:#1f2430 fg:#e6e6e6",
        "palette": "bg:#0f172a fg:#e5e7eb",
    }
)

SPINNER_INTERVAL = 0.08
# Invalidations closer together than this are coalesced into one redraw.
REDRAW_INTERVAL = 0.15


@dataclass
class TutorApp:
    """
    prompt_toolkit host for one chat screen.

    All input decisions are made by ``InputRouter``; this class only turns
    terminal keys into router keys and renders ``TutorState``.
    """

    state: TutorState
    router: InputRouter

    _running: bool = False
    _spinner_frame: int = 0
    _syncing: bool = False
    _app: Application | None = None
    _input_buffer: Buffer | None = None

    def __post_init__(self) -> None:
        self.state.on_state_change = self._on_state_change
        self.router.on_exit = self._handle_exit

    def _on_state_change(self) -> None:
        if self._app:
            self._app.invalidate()

    def _handle_exit(self) -> None:
        if self._app and self._app.is_running:
            self._app.exit()

    # =========================================================================
    # Input buffer
    # =========================================================================

    def _on_buffer_changed(self, buffer: Buffer) -> None:
        if self._syncing:
            return
        self.router.on_input_changed(buffer.text)

    def _sync_buffer(self) -> None:
        """Copy router-side edits of the input line back into the buffer."""
        buffer = self._input_buffer
        if buffer is None or buffer.text == self.state.input:
            return
        self._syncing = True
        try:
            buffer.document = Document(self.state.input, cursor_position=len(self.state.input))
        finally:
            self._syncing = False

    def _route(self, key: str) -> None:
        self.router.handle_key(key)
        self._sync_buffer()

    # =========================================================================
    # Rendering
    # =========================================================================

    def _width(self) -> int:
        if self._app is None:
            return 100
        return self._app.output.get_size().columns

    def _get_main_content(self) -> ANSI:
        view = self.state.main_view
        renderables: list[RenderableType] = [
            render_header(self.state, self.router.resolved.model),
            Text(),
        ]
        if view == MainView.VOCAB_PRACTICE and self.state.vocab_practice is not None:
            renderables.append(render_practice(self.state.vocab_practice))
        elif view in PICKER_VIEWS:
            renderables.append(
                render_picker(view, self.router.picker_items(), self.state.picker_index)
            )
        elif view == MainView.HELP:
            renderables.append(render_help_panel(self.router.registry.commands(palette_only=False)))
        else:
            renderables.extend(render_messages(self.state.history))
            if self.state.streaming.is_streaming:
                renderables.append(render_streaming(self.state.streaming.accumulated_content))
        return ANSI(render_to_ansi(Group(*renderables), width=self._width()))

    def _get_palette_content(self) -> ANSI:
        palette = self.state.palette
        title = "Models" if palette.view == PaletteView.MODELS else "Commands"
        return ANSI(
            render_palette(
                self.router.palette_items(), palette.selected_index, title=title, width=self._width()
            )
        )

    def _get_status_line(self) -> ANSI:
        return ANSI(render_to_ansi(render_status_line(self.state, self._spinner_frame)))

    def _get_input_hint(self) -> FormattedText:
        if self.state.status == Status.THINKING:
            return FormattedText([("class:input_hint", "  Ctrl+C cancel")])
        return FormattedText(
            [("class:input_hint", "  Enter send · / commands · Ctrl+K palette · Ctrl+C quit")]
        )

    def _build_layout(self) -> Layout:
        self._input_buffer = Buffer(
            name="input",
            multiline=False,
            on_text_changed=self._on_buffer_changed,
        )
        in_chat = Condition(lambda: self.state.main_view == MainView.CHAT)

        main_content = Window(
            content=FormattedTextControl(self._get_main_content),
            height=Dimension(weight=1),
            wrap_lines=True,
        )
        prompt_window = Window(
            content=FormattedTextControl([("class:prompt", "› ")]),
            width=2,
            height=1,
        )
        input_window = Window(content=BufferControl(buffer=self._input_buffer), height=1)
        input_area = ConditionalContainer(
            content=HSplit(
                [
                    VSplit([prompt_window, input_window]),
                    Window(content=FormattedTextControl(self._get_input_hint), height=1),
                ]
            ),
            filter=in_chat,
        )
        status_line = Window(
            content=FormattedTextControl(self._get_status_line),
            height=1,
            style="class:status",
        )
        palette_float = Float(
            content=ConditionalContainer(
                content=Window(
                    content=FormattedTextControl(self._get_palette_content),
                    width=80,
                    height=16,
                    style="class:palette",
                ),
                filter=Condition(lambda: self.state.palette.open) & in_chat,
            ),
            left=2,
            bottom=3,
        )
        root = FloatContainer(
            content=HSplit([main_content, input_area, status_line]),
            floats=[palette_float],
        )
        return Layout(root, focused_element=input_window)

    # =========================================================================
    # Keys
    # =========================================================================

    def _build_keybindings(self) -> KeyBindings:
        kb = KeyBindings()
        in_chat = Condition(lambda: self.state.main_view == MainView.CHAT)
        palette_open = Condition(lambda: self.state.palette.open)
        navigating = palette_open | ~in_chat

        @kb.add("enter")
        def handle_enter(event) -> None:
            self._route("enter")

        @kb.add("c-c")
        def handle_ctrl_c(event) -> None:
            self._route("c-c")

        @kb.add("c-k")
        def handle_ctrl_k(event) -> None:
            self._route("c-k")

        @kb.add("escape", filter=navigating)
        def handle_escape(event) -> None:
            self._route("escape")

        @kb.add("up", filter=navigating)
        def handle_up(event) -> None:
            self._route("up")

        @kb.add("down", filter=navigating)
        def handle_down(event) -> None:
            self._route("down")

        @kb.add("tab", filter=palette_open & in_chat)
        def handle_tab(event) -> None:
            self._route("tab")

        @kb.add("backspace", filter=~in_chat)
        def handle_backspace(event) -> None:
            self._route("backspace")

        @kb.add("<any>", filter=~in_chat)
        def handle_any(event) -> None:
            if event.data == " ":
                self._route("space")
            elif event.data and event.data.isprintable():
                self._route(event.data)

        return kb

    # =========================================================================
    # Run loop
    # =========================================================================

    async def run(self) -> None:
        """Run the TUI until the learner quits."""
        self._running = True
        self._app = Application(
            layout=self._build_layout(),
            key_bindings=self._build_keybindings(),
            style=TUI_STYLE,
            full_screen=True,
            mouse_support=False,
            min_redraw_interval=REDRAW_INTERVAL,
        )

        async def spinner_loop() -> None:
            while self._running:
                if self.state.status == Status.THINKING:
                    self._spinner_frame = (self._spinner_frame + 1) % 10000
                    if self._app:
                        self._app.invalidate()
                await asyncio.sleep(SPINNER_INTERVAL)

        spinner_task = asyncio.create_task(spinner_loop())
        logger.info("TUI started", extra={"session_id": self.state.session_id})
        try:
            await self._app.run_async()
        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            self._running = False
            if self.state.streaming.is_streaming:
                self.router.handle_interrupt()
            spinner_task.cancel()
            try:
                await spinner_task
            except asyncio.CancelledError:
                pass
            await self.router.wait_background()
            logger.info("TUI stopped", extra={"session_id": self.state.session_id})


async def run_tui(
    storage: TutorStorage,
    resolved: ResolvedConfig,
    provider: TutorProvider | None,
    *,
    config_state: ConfigState | None = None,
    provider_overrides: dict[str, str | None] | None = None,
) -> TutorState:
    """Run the chat screen and return its final state."""
    state = TutorState(config_state=config_state)
    router = InputRouter(
        state,
        storage,
        resolved=resolved,
        provider=provider,
        provider_overrides=provider_overrides,
    )
    app = TutorApp(state=state, router=router)
    await app.run()
    return state
