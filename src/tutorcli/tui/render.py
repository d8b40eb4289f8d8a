"""Rich rendering helpers for the tutor TUI."""

import io

# NOTE: no __future__.annotations; see tui/state.py.
from rich.box import ROUNDED
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tutorcli.commands import CommandSpec
from tutorcli.models import ChatMessage, MainView, PracticeKind, Role, Status
from tutorcli.tui.palette import PaletteItem
from tutorcli.tui.practice import option_letter, practice_hint
from tutorcli.tui.state import TutorState, VocabPracticeState

__all__ = [
    "Icons",
    "Theme",
    "render_to_ansi",
    "render_header",
    "render_message",
    "render_messages",
    "render_streaming",
    "render_palette",
    "render_picker",
    "render_practice",
    "render_help_panel",
    "render_status_line",
    "render_spinner",
]

SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
PALETTE_MAX_ROWS = 10

PICKER_TITLES = {
    MainView.MODE_PICKER: "Select practice mode",
    MainView.MODELS_PICKER: "Select model",
    MainView.SESSION_PICKER: "Resume session",
}


class Theme:
    """Color theme for the UI."""

    PRIMARY = "cyan"
    ACCENT = "magenta"

    SUCCESS = "green"
    WARNING = "yellow"
    ERROR = "red"
    INFO = "cyan"

    MESSAGE = "default"
    MUTED = "dim"

    BORDER = "bright_black"
    BORDER_ACTIVE = "cyan"
    HEADER = "bold cyan"
    SUBHEADER = "bold"


class Icons:
    """Unicode icons for the UI."""

    DONE = "✓"
    ERROR = "✗"
    SELECTED = "▶"
    USER = "›"
    TUTOR = "●"
    BOOK = "📚"


def render_to_ansi(
    renderable: RenderableType,
    *,
    width: int | None = None,
    force_terminal: bool = True,
) -> str:
    """
    Render a Rich renderable to ANSI escape codes.

    prompt_toolkit controls take the result wrapped in ``ANSI(...)``.
    """
    console = Console(
        file=io.StringIO(),
        width=width or 100,
        force_terminal=force_terminal,
        color_system="truecolor",
        legacy_windows=False,
    )
    console.print(renderable, end="")
    return console.file.getvalue()


def render_spinner(frame: int) -> str:
    return SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]


def render_header(state: TutorState, model: str) -> Text:
    text = Text()
    text.append(" English Tutor ", style=f"bold {Theme.PRIMARY}")
    text.append("│", style=Theme.BORDER)
    text.append(f" {model} ", style=Theme.INFO)
    text.append("│", style=Theme.BORDER)
    text.append(f" {state.difficulty.value} ", style=Theme.ACCENT)
    text.append("│", style=Theme.BORDER)
    text.append(f" {state.mode.value} ", style=Theme.ACCENT)
    text.append("│", style=Theme.BORDER)
    text.append(f" {state.session_id[:8]}", style=Theme.MUTED)
    return text


def render_message(message: ChatMessage) -> RenderableType:
    """One history entry. Notices render as a single muted or red line."""
    if message.notice:
        style = Theme.ERROR if message.error else Theme.MUTED
        return Text(message.content, style=style)
    if message.role == Role.USER:
        text = Text()
        text.append(f"{Icons.USER} ", style=f"bold {Theme.SUCCESS}")
        text.append(message.content, style=f"bold {Theme.MESSAGE}")
        return text
    if message.role == Role.SYSTEM:
        return Text(message.content, style=f"italic {Theme.MUTED}")
    return Panel(
        Markdown(message.content),
        title=f"[{Theme.PRIMARY}]{Icons.TUTOR} Tutor[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.BORDER,
        padding=(0, 1),
        box=ROUNDED,
    )


def render_messages(history: list[ChatMessage], limit: int = 30) -> list[RenderableType]:
    if not history:
        return [
            Text(
                "Say hello to start practicing. Type / for commands, Ctrl+K for the palette.",
                style=Theme.MUTED,
            )
        ]
    return [render_message(message) for message in history[-limit:]]


def render_streaming(content: str) -> Panel:
    """The in-flight reply, shown as raw text with a cursor."""
    text = Text(content, style=Theme.MESSAGE)
    text.append("▌", style=f"bold {Theme.PRIMARY}")
    return Panel(
        text,
        title=f"[{Theme.PRIMARY}]{Icons.TUTOR} Tutor[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.BORDER_ACTIVE,
        padding=(0, 1),
        box=ROUNDED,
    )


def render_palette(
    items: list[PaletteItem],
    selected_index: int | None,
    title: str = "Commands",
    width: int | None = None,
) -> str:
    """Render the command palette as ANSI text."""
    elements: list[RenderableType] = []
    start = 0
    if selected_index is not None and selected_index >= PALETTE_MAX_ROWS:
        start = selected_index - PALETTE_MAX_ROWS + 1
    for i, item in enumerate(items[start : start + PALETTE_MAX_ROWS], start=start):
        line = Text()
        selected = i == selected_index
        if selected:
            line.append(f" {Icons.SELECTED} ", style=f"bold {Theme.PRIMARY}")
        else:
            line.append("   ")
        label_style = Theme.MUTED if item.disabled else ("bold" if selected else "")
        line.append(item.label, style=label_style)
        if item.description:
            line.append(f"  {item.description}", style=Theme.MUTED)
        elements.append(line)

    if len(items) > start + PALETTE_MAX_ROWS:
        elements.append(Text(f"   ... {len(items) - start - PALETTE_MAX_ROWS} more", style=Theme.MUTED))

    elements.append(Text())
    help_text = Text()
    help_text.append("↑↓", style="bold")
    help_text.append(" navigate  ", style=Theme.MUTED)
    help_text.append("Tab", style="bold")
    help_text.append(" commands/models  ", style=Theme.MUTED)
    help_text.append("Enter", style="bold")
    help_text.append(" select  ", style=Theme.MUTED)
    help_text.append("Esc", style="bold")
    help_text.append(" close", style=Theme.MUTED)
    elements.append(help_text)

    panel = Panel(
        Group(*elements),
        title=f"[{Theme.PRIMARY}]{title}[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.BORDER_ACTIVE,
        padding=(0, 1),
        box=ROUNDED,
        width=min(width or 80, 80),
    )
    return render_to_ansi(panel, width=width)


def render_picker(view: MainView, rows: list[tuple[str, str]], index: int) -> Panel:
    elements: list[RenderableType] = []
    if not rows:
        elements.append(Text("  Nothing to choose from.", style=Theme.MUTED))
    for i, (label, description) in enumerate(rows):
        line = Text()
        if i == index:
            line.append(f" {Icons.SELECTED} ", style=f"bold {Theme.PRIMARY}")
            line.append(label, style="bold")
        else:
            line.append("   ")
            line.append(label)
        if description:
            line.append(f"  {description}", style=Theme.MUTED)
        elements.append(line)
    elements.append(Text())
    elements.append(Text("↑↓ navigate  Enter select  Esc back", style=Theme.MUTED))
    return Panel(
        Group(*elements),
        title=f"[{Theme.PRIMARY}]{PICKER_TITLES.get(view, '')}[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.BORDER_ACTIVE,
        padding=(0, 1),
        box=ROUNDED,
    )


def render_practice(practice: VocabPracticeState) -> Panel:
    """The practice card for the current word."""
    item = practice.current
    elements: list[RenderableType] = []
    position = Text()
    position.append(f"Word {practice.current_index + 1} of {len(practice.items)}", style=Theme.MUTED)
    position.append(
        f"   Score: {practice.score.correct}/{practice.score.answered}", style=Theme.MUTED
    )
    elements.append(position)
    elements.append(Text())

    if item is not None:
        if practice.kind == PracticeKind.FLASHCARD:
            elements.append(Text(item.word, style=f"bold {Theme.PRIMARY}"))
            if practice.show_answer:
                elements.append(Text(item.definition or "(no definition)", style=Theme.MESSAGE))
        elif practice.kind == PracticeKind.TYPE_ANSWER:
            elements.append(Text(item.definition or "", style=Theme.MESSAGE))
            elements.append(Text())
            answer = Text("> ", style=f"bold {Theme.SUCCESS}")
            answer.append(practice.user_input)
            answer.append("▌", style=Theme.PRIMARY)
            elements.append(answer)
        else:
            elements.append(Text(item.word, style=f"bold {Theme.PRIMARY}"))
            elements.append(Text())
            for i, option in enumerate(item.mc_options):
                line = Text()
                chosen = i == practice.selected_option
                line.append(f" {Icons.SELECTED} " if chosen else "   ", style=Theme.PRIMARY)
                line.append(f"{option_letter(i)}) ", style="bold")
                line.append(option, style="bold" if chosen else Theme.MESSAGE)
                elements.append(line)

    if practice.feedback is not None:
        elements.append(Text())
        style = Theme.SUCCESS if practice.feedback.correct else Theme.ERROR
        icon = Icons.DONE if practice.feedback.correct else Icons.ERROR
        elements.append(Text(f"{icon} {practice.feedback.message}", style=f"bold {style}"))

    elements.append(Text())
    elements.append(Text(practice_hint(practice), style=Theme.MUTED))

    return Panel(
        Group(*elements),
        title=f"[{Theme.PRIMARY}]{Icons.BOOK} Vocabulary Practice ({practice.kind.label})[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.BORDER_ACTIVE,
        padding=(0, 1),
        box=ROUNDED,
    )


HELP_KEYS = [
    ("Enter", "Send message / run command"),
    ("/", "Open the command palette"),
    ("//", "Send a message that starts with /"),
    ("Ctrl+K", "Toggle the command palette"),
    ("Tab", "Switch palette between commands and models"),
    ("Esc", "Close palette / go back"),
    ("Ctrl+C", "Cancel the reply, or quit when idle"),
]


def render_help_panel(commands: list[CommandSpec]) -> Panel:
    table = Table(
        show_header=True,
        header_style=f"bold {Theme.PRIMARY}",
        box=ROUNDED,
        padding=(0, 2),
    )
    table.add_column("Key / Command", style="bold")
    table.add_column("Action", style=Theme.MESSAGE)
    for key, description in HELP_KEYS:
        table.add_row(key, description)
    table.add_section()
    for spec in commands:
        table.add_row(spec.usage or spec.name, spec.description)

    return Panel(
        Group(table, Text("Esc, Enter or q to return", style=Theme.MUTED)),
        title=f"[{Theme.PRIMARY}]Help[/{Theme.PRIMARY}]",
        title_align="left",
        border_style=Theme.BORDER,
        padding=(0, 1),
        box=ROUNDED,
    )


def render_status_line(state: TutorState, spinner_frame: int = 0) -> Text:
    text = Text()
    if state.status == Status.THINKING:
        text.append(f" {render_spinner(spinner_frame)} ", style=Theme.PRIMARY)
        text.append("Tutor is typing...  ", style=Theme.PRIMARY)
        text.append("Ctrl+C to cancel", style=Theme.MUTED)
    elif state.status == Status.ERROR:
        text.append(f" {Icons.ERROR} ", style=Theme.ERROR)
        text.append(state.config_error or "Last request failed.", style=Theme.ERROR)
    else:
        text.append(f" {Icons.DONE} ready", style=Theme.MUTED)
    return text
