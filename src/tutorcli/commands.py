"""
Slash-command registry.

Each command is a ``CommandSpec`` row in a closed table, looked up by exact
name (or alias). Handlers take the whitespace-split arguments, a read-only
``CommandContext`` snapshot, and ``CommandActions`` for mutations. They
return a ``CommandResult`` to show inline, or None when they performed
their own view transition.
"""

from __future__ import annotations

import logging
import random
import sqlite3
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .config import ConfigState, ResolvedConfig, TutorConfig
from .exceptions import CommandError, TutorError
from .export import EXPORT_FORMATS, export_conversation, is_valid_export_format
from .models import (
    MODE_GUIDANCE,
    ChatMessage,
    Difficulty,
    MainView,
    PracticeKind,
    PracticeMode,
    Role,
    Status,
    conversation_messages,
)
from .providers.base import TutorProvider
from .storage import DEFAULT_COLLECTION, SessionRecord, TutorStorage, VocabularyItem
from .summary import build_resume_context, generate_session_summary, generate_session_title
from .tui.state import PracticeItem, VocabPracticeState
from .vocab_definitions import fetch_definitions

logger = logging.getLogger(__name__)

PRACTICE_SIZE = 10
MIN_CHOICES = 4
SESSION_LOOKUP_LIMIT = 100

SAVE_USAGE = "Usage: /save <word1, word2, ...> [collection]\nExample: /save apple, banana, cherry fruits"
VOCAB_USAGE = (
    "Usage: /vocab [list|stats|collections|practice] [collection]\n"
    "Examples:\n"
    "  /vocab - list all words\n"
    "  /vocab list fruits - list words in 'fruits' collection\n"
    "  /vocab stats - show statistics\n"
    "  /vocab collections - list all collections\n"
    "  /vocab practice - start practice session\n"
    "  /vocab practice --type | --mc - type the word or pick a definition"
)


@dataclass
class CommandResult:
    """Status line produced by a command."""

    message: str
    is_error: bool = False


@dataclass
class PaletteHint:
    """Argument suggestion shown in the palette for a specific command.

    ``insert`` replaces the input line when the hint is chosen.
    """

    label: str
    insert: str
    description: str = ""


@dataclass
class CommandContext:
    """Snapshot of the state a command may read."""

    session_id: str
    history: list[ChatMessage]
    difficulty: Difficulty
    mode: PracticeMode
    resolved: ResolvedConfig
    config_state: ConfigState
    provider: TutorProvider | None
    storage: TutorStorage
    export_dir: Path | None = None


class CommandActions(Protocol):
    """Mutations a command may request from the host."""

    def reset_session(self, new_session: bool = False) -> None: ...
    def set_difficulty(self, difficulty: Difficulty) -> None: ...
    def set_mode(self, mode: PracticeMode) -> None: ...
    def set_session_id(self, session_id: str) -> None: ...
    def set_history(self, transform: Callable[[list[ChatMessage]], list[ChatMessage]]) -> None: ...
    def set_config_state(self, config_state: ConfigState) -> None: ...
    def write_config(self, config: TutorConfig) -> Path: ...
    def set_status(self, status: Status) -> None: ...
    def add_notice(self, text: str, role: Role = Role.ASSISTANT) -> None: ...
    def set_main_view(self, view: MainView) -> None: ...
    def set_vocab_practice(self, practice: VocabPracticeState | None) -> None: ...
    def open_model_picker(self) -> None: ...
    def open_session_picker(self) -> None: ...
    def run_background(self, coro: Coroutine[Any, Any, None]) -> None: ...


Handler = Callable[[list[str], CommandContext, CommandActions], "CommandResult | None"]
HintGenerator = Callable[[CommandContext, list[str]], list[PaletteHint]]
DisabledPredicate = Callable[[CommandContext], "str | None"]


@dataclass(frozen=True)
class CommandSpec:
    """One row of the command table."""

    name: str
    description: str
    handler: Handler
    usage: str = ""
    palette: bool = True
    aliases: tuple[str, ...] = ()
    hints: HintGenerator | None = None
    disabled_reason: DisabledPredicate | None = None

    def is_disabled(self, ctx: CommandContext) -> str | None:
        if self.disabled_reason is None:
            return None
        return self.disabled_reason(ctx)


class CommandRegistry:
    """Closed table of slash commands.

    Usage:
        registry = default_registry()
        result = registry.dispatch("/mode grammar", ctx, actions)
    """

    def __init__(self, specs: list[CommandSpec] | None = None) -> None:
        self._commands: dict[str, CommandSpec] = {}
        self._aliases: dict[str, str] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: CommandSpec) -> None:
        self._commands[spec.name] = spec
        for alias in spec.aliases:
            self._aliases[alias] = spec.name

    def get(self, name: str) -> CommandSpec | None:
        """Exact, case-sensitive lookup by name or alias."""
        spec = self._commands.get(name)
        if spec is None and name in self._aliases:
            spec = self._commands[self._aliases[name]]
        return spec

    def commands(self, palette_only: bool = False) -> list[CommandSpec]:
        specs = list(self._commands.values())
        if palette_only:
            specs = [s for s in specs if s.palette]
        return specs

    def names(self) -> list[str]:
        return list(self._commands)

    def dispatch(
        self, raw: str, ctx: CommandContext, actions: CommandActions
    ) -> CommandResult | None:
        tokens = raw.strip().split()
        if not tokens:
            return CommandResult("Unknown command. Use /help.", is_error=True)
        name, args = tokens[0], tokens[1:]
        spec = self.get(name)
        if spec is None:
            logger.debug("Unknown command", extra={"command": name})
            return CommandResult("Unknown command. Use /help.", is_error=True)

        reason = spec.is_disabled(ctx)
        if reason:
            return CommandResult(reason, is_error=True)

        logger.debug("Dispatching command", extra={"command": spec.name, "args": len(args)})
        try:
            return spec.handler(args, ctx, actions)
        except CommandError as e:
            return CommandResult(e.message, is_error=True)
        except (TutorError, sqlite3.Error) as e:
            logger.warning("Command failed", exc_info=True, extra={"command": spec.name})
            return CommandResult(getattr(e, "message", str(e)), is_error=True)


# -- Shared helpers -------------------------------------------------------


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _short(session_id: str) -> str:
    return session_id[:8]


def _find_sessions(storage: TutorStorage, prefix: str) -> list[SessionRecord]:
    return storage.find_sessions(prefix, SESSION_LOOKUP_LIMIT)


def resume_session(
    record: SessionRecord, ctx: CommandContext, actions: CommandActions
) -> CommandResult:
    """Load a stored session into the conversation.

    A stored summary replaces the transcript with a single resume-context
    system message; otherwise the stored messages are loaded verbatim.
    """
    if record.summary:
        actions.set_session_id(record.session_id)
        context = build_resume_context(record.summary, ctx.difficulty.value, ctx.mode.value)
        actions.set_history(lambda _: [ChatMessage(role=Role.SYSTEM, content=context)])
        return CommandResult(
            f"Resumed session {_short(record.session_id)} using summary. "
            f"Previous: {record.message_count} messages."
        )

    stored = ctx.storage.get_session_messages(record.session_id)
    if not stored:
        return CommandResult("Session has no messages.", is_error=True)
    messages = [
        ChatMessage(role=Role(m.role), content=m.content, id=m.message_id) for m in stored
    ]
    actions.set_session_id(record.session_id)
    actions.set_history(lambda _: messages)
    return CommandResult(
        f"Resumed session {_short(record.session_id)} with {len(messages)} messages. "
        "(Tip: Use /summary to generate a summary for faster resume next time)"
    )


def _session_hints(command: str) -> HintGenerator:
    def hints(ctx: CommandContext, args: list[str]) -> list[PaletteHint]:
        return [
            PaletteHint(
                label=_short(s.session_id),
                insert=f"{command} {_short(s.session_id)}",
                description=s.title or (s.summary or "")[:50] or _plural(s.message_count, "message"),
            )
            for s in ctx.storage.list_sessions(10)
        ]

    return hints


def _static_hints(command: str, options: list[tuple[str, str]]) -> HintGenerator:
    def hints(ctx: CommandContext, args: list[str]) -> list[PaletteHint]:
        return [PaletteHint(label=o, insert=f"{command} {o}", description=d) for o, d in options]

    return hints


# -- Handlers -------------------------------------------------------------


def _cmd_help(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult | None:
    if args and args[0] == "keys":
        actions.set_main_view(MainView.HELP)
        return None
    names = ", ".join(spec.name for spec in _REGISTRY_ORDER)
    return CommandResult(f"Commands: {names}\nTip: To send a message starting with /, type //")


def _cmd_clear(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    new_session = "--new-session" in args
    actions.reset_session(new_session)
    if new_session:
        return CommandResult("Conversation cleared. Started new session.")
    return CommandResult("Conversation cleared.")


def _cmd_difficulty(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    options = ", ".join(d.value for d in Difficulty.ordered())
    requested = args[0].lower() if args else ""
    if not requested:
        return CommandResult(f"Current difficulty: {ctx.difficulty.value}. Options: {options}")
    try:
        level = Difficulty(requested)
    except ValueError:
        return CommandResult(f"Unknown difficulty. Options: {options}", is_error=True)
    actions.set_difficulty(level)
    return CommandResult(f"Difficulty set to {level.value}.")


def _mode_help() -> str:
    return f"Modes: {', '.join(m.value for m in PracticeMode)}"


def _cmd_mode(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult | None:
    requested = args[0].lower() if args else ""
    if not requested:
        return CommandResult(_mode_help())
    if requested == "pick":
        actions.set_main_view(MainView.MODE_PICKER)
        return None
    try:
        mode = PracticeMode(requested)
    except ValueError:
        return CommandResult(f"Unknown mode. {_mode_help()}", is_error=True)
    actions.set_mode(mode)
    return CommandResult(f"Mode set to {mode.value}.")


def _cmd_export(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    if not conversation_messages(ctx.history):
        return CommandResult("No messages to export.", is_error=True)
    fmt = args[0].lower() if args else "md"
    if not is_valid_export_format(fmt):
        return CommandResult(f"Invalid format. Options: {', '.join(EXPORT_FORMATS)}", is_error=True)
    path = export_conversation(ctx.history, ctx.session_id, fmt, directory=ctx.export_dir)
    return CommandResult(f"Exported to {path.name}")


def _cmd_history(args: list[str], ctx: CommandContext, actions: CommandActions) -> None:
    actions.open_session_picker()
    return None


def _cmd_resume(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult | None:
    if not args:
        actions.open_session_picker()
        return None
    prefix = args[0]
    matches = _find_sessions(ctx.storage, prefix)
    if not matches:
        return CommandResult(
            f'Session "{prefix}" not found. Use /history to list sessions.', is_error=True
        )
    return resume_session(matches[0], ctx, actions)


def _cmd_models(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult | None:
    if not ctx.resolved.api_key:
        return CommandResult("API key required to list models.", is_error=True)
    actions.open_model_picker()
    return None


def _cmd_config(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    key = args[0].lower() if args else ""
    value = " ".join(args[1:]).strip()
    summary_display = ctx.resolved.summary_model or "(same as main)"

    if not key:
        return CommandResult(
            "Current Configuration:\n\n"
            f"  Provider: {ctx.resolved.provider.value}\n"
            f"  Model: {ctx.resolved.model}\n"
            f"  Summary Model: {summary_display}\n"
            f"  Config Path: {ctx.config_state.path}\n\n"
            "Use /config <key> <value> to change settings.\n"
            "Keys: summary-model"
        )

    if key != "summary-model":
        return CommandResult(f"Unknown config key: {key}. Available: summary-model", is_error=True)

    if not value:
        return CommandResult(f"Summary model: {summary_display}")

    is_reset = value in ("--reset", "reset")
    existing = ctx.config_state.config
    next_config = TutorConfig(
        provider=ctx.resolved.provider,
        model=ctx.resolved.model,
        api_key=existing.api_key if existing else None,
        summary_model=None if is_reset else value,
        log_level=existing.log_level if existing else "warning",
        log_file=existing.log_file if existing else None,
    )
    path = actions.write_config(next_config)
    actions.set_config_state(ConfigState(config=next_config, error=None, path=path))
    if is_reset:
        return CommandResult("Summary model reset to use main model.")
    return CommandResult(f"Summary model set to {value}.")


def _cmd_rename(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    title = " ".join(args[1:]).strip()
    if not args or not title:
        return CommandResult("Usage: /rename <session_id> <new title>", is_error=True)
    prefix = args[0]
    matches = _find_sessions(ctx.storage, prefix)
    if not matches:
        return CommandResult(
            f'Session "{prefix}" not found. Use /history to list sessions.', is_error=True
        )
    if len(matches) > 1:
        return CommandResult(
            f'Session id prefix "{prefix}" is ambiguous. Please type more characters.',
            is_error=True,
        )
    match = matches[0]
    ctx.storage.update_session_title(match.session_id, title)
    return CommandResult(f'Session {_short(match.session_id)} renamed to "{title}".')


def _cmd_summary(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult | None:
    provider = ctx.provider
    if provider is None:
        return CommandResult("Provider not configured.", is_error=True)
    turns = conversation_messages(ctx.history)
    if not turns:
        return CommandResult("No messages to summarize.", is_error=True)

    existing = ctx.storage.get_session(ctx.session_id)
    if existing and existing.summary and "--regenerate" not in args:
        return CommandResult(
            f"Session Summary:\n\n{existing.summary}\n\n"
            "(Use /summary --regenerate to create a new summary)"
        )

    storage = ctx.storage
    session_id = ctx.session_id
    model = ctx.resolved.summary_model
    needs_title = not (existing and existing.title)

    async def summarize() -> None:
        try:
            summary = await generate_session_summary(provider, turns, model=model)
            storage.update_session_summary(session_id, summary)
            title_line = ""
            if needs_title:
                title = await generate_session_title(provider, turns, model=model)
                storage.update_session_title(session_id, title)
                title_line = f'\nTitle: "{title}"'
            actions.add_notice(f"(Tip) Summary generated:{title_line}\n\n{summary}")
        except (TutorError, sqlite3.Error):
            logger.warning("Summary command failed", exc_info=True)
            actions.add_notice("(System) Failed to generate summary.")
        finally:
            actions.set_status(Status.IDLE)

    actions.set_status(Status.THINKING)
    actions.run_background(summarize())
    return None


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1].strip()
    return text


def parse_save_args(args: list[str]) -> tuple[list[str], str, str | None]:
    """Split /save arguments into (words, collection, definition).

    Raises CommandError for malformed input.
    """
    tokens = list(args)
    definition: str | None = None
    if "--def" in tokens:
        index = tokens.index("--def")
        definition = _unquote(" ".join(tokens[index + 1 :]).strip())
        tokens = tokens[:index]

    if not tokens:
        raise CommandError(SAVE_USAGE)

    last = tokens[-1]
    has_collection = len(tokens) > 1 and "," not in last
    collection = last.lower() if has_collection else DEFAULT_COLLECTION
    word_tokens = tokens[:-1] if has_collection else tokens
    words = [w.strip().lower() for w in " ".join(word_tokens).split(",") if w.strip()]
    if not words:
        raise CommandError("No words provided.")
    if definition is not None and len(words) != 1:
        raise CommandError("--def can only be used with a single word.")
    if definition is not None and not definition:
        raise CommandError('Usage: /save <word> --def "definition"')
    return words, collection, definition


def _cmd_save(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    if not args:
        return CommandResult(SAVE_USAGE, is_error=True)
    words, collection, definition = parse_save_args(args)

    storage = ctx.storage
    if collection != DEFAULT_COLLECTION:
        storage.create_collection(collection)
    definitions = {words[0]: definition} if definition else None
    saved = storage.save_vocab_items(words, collection, definitions)

    provider = ctx.provider
    if provider is not None and definition is None and saved:

        async def define() -> None:
            found = await fetch_definitions(provider, words)
            for word, text in found.items():
                storage.update_vocab_definition(word, collection, text)
            if found:
                actions.add_notice(f"(Tip) Added definitions for {_plural(len(found), 'word')}.")

        actions.run_background(define())

    return CommandResult(f'Saved {_plural(saved, "word")} to "{collection}" collection.')


def _vocab_list(collection: str | None, storage: TutorStorage) -> CommandResult:
    items = storage.get_vocab_by_collection(collection) if collection else storage.get_all_vocab(50)
    if not items:
        if collection:
            return CommandResult(f'No vocabulary in "{collection}" collection.')
        return CommandResult("No vocabulary saved yet. Use /save to add words.")
    grouped: dict[str, list[str]] = {}
    for item in items:
        grouped.setdefault(item.collection, []).append(item.word)
    lines = [f"[{col}] {', '.join(words)}" for col, words in grouped.items()]
    return CommandResult(f"Vocabulary ({len(items)} words):\n\n" + "\n".join(lines))


def build_multiple_choice(
    items: list[VocabularyItem], rng: random.Random | None = None
) -> list[PracticeItem]:
    """Attach four shuffled definition options to each item.

    Distractors come from the other items' definitions, so every item needs a
    definition and at least ``MIN_CHOICES`` items are required.
    """
    rng = rng or random.Random()
    practice: list[PracticeItem] = []
    for item in items:
        others = [o.definition for o in items if o.id != item.id and o.definition]
        distractors = rng.sample(others, MIN_CHOICES - 1)
        options = [item.definition or ""] + distractors
        rng.shuffle(options)
        practice.append(
            PracticeItem(
                id=item.id,
                word=item.word,
                definition=item.definition,
                mc_options=options,
                mc_correct_index=options.index(item.definition or ""),
            )
        )
    return practice


def _vocab_practice(
    args: list[str], ctx: CommandContext, actions: CommandActions, rng: random.Random | None = None
) -> CommandResult | None:
    flags = {a.lower() for a in args if a.startswith("--")}
    positional = [a for a in args if not a.startswith("--")]
    collection = positional[0].lower() if positional else None

    if "--mc" in flags:
        kind = PracticeKind.MULTIPLE_CHOICE
    elif "--type" in flags:
        kind = PracticeKind.TYPE_ANSWER
    else:
        kind = PracticeKind.FLASHCARD

    vocab = ctx.storage.get_vocab_for_practice(collection, PRACTICE_SIZE)
    if not vocab:
        if collection:
            return CommandResult(f'No vocabulary in "{collection}" to practice.', is_error=True)
        return CommandResult(
            "No vocabulary to practice. Use /save to add words first.", is_error=True
        )

    items: list[PracticeItem]
    if kind == PracticeKind.FLASHCARD:
        items = [PracticeItem(id=v.id, word=v.word, definition=v.definition) for v in vocab]
    else:
        defined = [v for v in vocab if v.definition]
        missing = len(vocab) - len(defined)
        if missing:
            actions.add_notice(
                f"(Tip) Warning: {missing} of {len(vocab)} words have no definition "
                "and will be skipped.",
                role=Role.SYSTEM,
            )
        if kind == PracticeKind.TYPE_ANSWER:
            if not defined:
                return CommandResult(
                    'None of these words have definitions yet. Use /save <word> --def "..." '
                    "to add one.",
                    is_error=True,
                )
            items = [PracticeItem(id=v.id, word=v.word, definition=v.definition) for v in defined]
        elif len(defined) < MIN_CHOICES:
            actions.add_notice(
                f"(Tip) Multiple choice needs at least {MIN_CHOICES} words with definitions "
                f"(found {len(defined)}). Switching to flashcards.",
                role=Role.SYSTEM,
            )
            kind = PracticeKind.FLASHCARD
            items = [PracticeItem(id=v.id, word=v.word, definition=v.definition) for v in vocab]
        else:
            items = build_multiple_choice(defined, rng)

    actions.set_vocab_practice(VocabPracticeState(kind=kind, items=items, collection=collection))
    actions.set_main_view(MainView.VOCAB_PRACTICE)
    return None


def _cmd_vocab(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult | None:
    subcommand = args[0].lower() if args else ""
    storage = ctx.storage

    if not subcommand or subcommand == "list":
        return _vocab_list(args[1].lower() if len(args) > 1 else None, storage)

    if subcommand == "stats":
        stats = storage.get_vocab_stats()
        return CommandResult(
            "Vocabulary Stats:\n\n"
            f"  Total words: {stats.total}\n"
            f"  Mastered: {stats.mastered}\n"
            f"  Learning: {stats.learning}\n"
            f"  Collections: {stats.collections}"
        )

    if subcommand == "collections":
        collections = storage.get_collections()
        if not collections:
            return CommandResult("No collections yet. Words are saved to 'default' collection.")
        lines = [f"  {c.name.ljust(15)} {c.word_count} words" for c in collections]
        return CommandResult("Collections:\n\n" + "\n".join(lines))

    if subcommand == "practice":
        return _vocab_practice(args[1:], ctx, actions)

    return CommandResult(VOCAB_USAGE, is_error=True)


def _days(count: int) -> str:
    return f"{count} day{'' if count == 1 else 's'}"


def format_learning_stats(storage: TutorStorage) -> str:
    stats = storage.get_learning_stats()
    lines = [
        "\U0001f4ca Learning Statistics\n",
        "Sessions:",
        f"  Total: {stats.total_sessions}",
        f"  This week: {stats.sessions_this_week}",
        f"  This month: {stats.sessions_this_month}",
        "",
        "Messages:",
        f"  Total: {stats.total_messages}",
        f"  You sent: {stats.user_messages}",
        f"  Tutor replies: {stats.assistant_messages}",
        f"  Avg per session: {stats.avg_messages_per_session:g}",
        "",
        "Vocabulary:",
        f"  Total words: {stats.vocab_total}",
        f"  Mastered: {stats.vocab_mastered}",
        f"  Learning: {stats.vocab_learning}",
        f"  Reviewed today: {stats.reviewed_today}",
        f"  Total reviews: {stats.total_reviews}",
        "",
        "Streaks:",
        f"  Current streak: {_days(stats.current_streak)}",
        f"  Longest streak: {_days(stats.longest_streak)}",
        f"  Last active: {stats.last_active or 'Never'}",
        "",
        "Practice Modes:",
    ]
    if stats.favorite_mode:
        lines.append(f"  Favorite mode: {stats.favorite_mode}")
        breakdown = ", ".join(f"{mode}: {count}" for mode, count in stats.mode_breakdown.items())
        if breakdown:
            lines.append(f"  Breakdown: {breakdown}")
    else:
        lines.append("  No practice mode data yet")
    return "\n".join(lines)


def _cmd_stats(args: list[str], ctx: CommandContext, actions: CommandActions) -> CommandResult:
    return CommandResult(format_learning_stats(ctx.storage))


# -- Hints and availability ------------------------------------------------


def _save_hints(ctx: CommandContext, args: list[str]) -> list[PaletteHint]:
    words = " ".join(args) or "<words>"
    hints = [
        PaletteHint(label=c.name, insert=f"/save {words} {c.name}", description=_plural(c.word_count, "word"))
        for c in ctx.storage.get_collections()
    ]
    hints.append(
        PaletteHint(label="--def", insert=f'/save {words} --def ""', description="Save one word with a definition")
    )
    return hints


def _vocab_hints(ctx: CommandContext, args: list[str]) -> list[PaletteHint]:
    return [
        PaletteHint("list", "/vocab list", "List saved words"),
        PaletteHint("stats", "/vocab stats", "Vocabulary statistics"),
        PaletteHint("collections", "/vocab collections", "List collections"),
        PaletteHint("practice", "/vocab practice", "Flashcard practice"),
        PaletteHint("practice --type", "/vocab practice --type", "Type the word for each definition"),
        PaletteHint("practice --mc", "/vocab practice --mc", "Pick the right definition"),
    ]


def _difficulty_hints(ctx: CommandContext, args: list[str]) -> list[PaletteHint]:
    return [
        PaletteHint(d.value, f"/difficulty {d.value}", "current" if d == ctx.difficulty else "")
        for d in Difficulty.ordered()
    ]


def _mode_hints(ctx: CommandContext, args: list[str]) -> list[PaletteHint]:
    return [PaletteHint(m.value, f"/mode {m.value}", MODE_GUIDANCE[m][:60]) for m in PracticeMode]


def _needs_api_key(ctx: CommandContext) -> str | None:
    return None if ctx.resolved.api_key else "API key required to list models."


def _needs_provider(ctx: CommandContext) -> str | None:
    return None if ctx.provider is not None else "Provider not configured."


_REGISTRY_ORDER: list[CommandSpec] = [
    CommandSpec("/clear", "Clear the conversation", _cmd_clear, "/clear [--new-session]",
                hints=_static_hints("/clear", [("--new-session", "Also start a new session")])),
    CommandSpec("/config", "Show or change configuration", _cmd_config,
                "/config [summary-model [<model>|--reset]]",
                hints=_static_hints("/config", [("summary-model", "Model used for /summary")])),
    CommandSpec("/difficulty", "Show or set difficulty", _cmd_difficulty, "/difficulty [level]",
                aliases=("/diff",), hints=_difficulty_hints),
    CommandSpec("/mode", "Show or set practice mode", _cmd_mode, "/mode [name]", hints=_mode_hints),
    CommandSpec("/export", "Export the conversation", _cmd_export, "/export [md|txt|json]",
                hints=_static_hints("/export", [("md", "Markdown"), ("txt", "Plain text"), ("json", "JSON")])),
    CommandSpec("/history", "Browse past sessions", _cmd_history, "/history"),
    CommandSpec("/resume", "Resume a past session", _cmd_resume, "/resume [session_id]",
                hints=_session_hints("/resume")),
    CommandSpec("/rename", "Rename a past session", _cmd_rename, "/rename <session_id> <title>",
                hints=_session_hints("/rename")),
    CommandSpec("/summary", "Summarize this session", _cmd_summary, "/summary [--regenerate]",
                hints=_static_hints("/summary", [("--regenerate", "Replace the stored summary")]),
                disabled_reason=_needs_provider),
    CommandSpec("/save", "Save vocabulary words", _cmd_save,
                '/save <words> [collection] [--def "text"]', aliases=("/s",), hints=_save_hints),
    CommandSpec("/vocab", "Vocabulary lists and practice", _cmd_vocab,
                "/vocab [list|stats|collections|practice] [collection] [--type|--mc]", hints=_vocab_hints),
    CommandSpec("/stats", "Learning statistics", _cmd_stats, "/stats"),
    CommandSpec("/models", "Pick a model", _cmd_models, "/models", disabled_reason=_needs_api_key),
    CommandSpec("/help", "List commands", _cmd_help, "/help [keys]",
                hints=_static_hints("/help", [("keys", "Keyboard shortcuts")])),
]


def default_registry() -> CommandRegistry:
    """Registry with every built-in command."""
    return CommandRegistry(list(_REGISTRY_ORDER))


__all__ = [
    "CommandActions",
    "CommandContext",
    "CommandRegistry",
    "CommandResult",
    "CommandSpec",
    "PaletteHint",
    "build_multiple_choice",
    "default_registry",
    "format_learning_stats",
    "parse_save_args",
    "resume_session",
]
