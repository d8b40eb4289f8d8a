"""Command palette items for the tutor TUI.

The palette lists one of three things, depending on the input line:

- commands whose name starts with the typed ``/token``
- argument hints for a command once a space follows its name
- model names when the palette is in the models view

It is never empty while open: when nothing matches, a single disabled
placeholder item is returned instead.
"""

from dataclasses import dataclass

# NOTE: no __future__.annotations; see tui/state.py.
from tutorcli.commands import CommandContext, CommandRegistry, CommandSpec
from tutorcli.models import PaletteView


@dataclass
class PaletteItem:
    """A row in the palette."""

    label: str
    description: str = ""
    # Text that replaces the input line when chosen (argument hints).
    insert: str | None = None
    # Command name to complete or run (command rows).
    command: str | None = None
    # Model name to switch to (models view).
    model: str | None = None
    disabled: bool = False


def fuzzy_match(pattern: str, text: str) -> tuple[bool, int]:
    """
    Fuzzy match pattern against text.

    Returns (is_match, score) where higher score is better match.
    Prefers substring matches (best at the start), then in-order character
    matches with bonuses for consecutive characters and word boundaries.
    """
    if not pattern:
        return True, 0

    pattern_lower = pattern.lower()
    text_lower = text.lower()

    if pattern_lower in text_lower:
        start_bonus = 100 if text_lower.startswith(pattern_lower) else 0
        return True, 1000 + start_bonus - text_lower.index(pattern_lower)

    pattern_idx = 0
    score = 0
    last_match_idx = -1
    word_boundary = True

    for i, char in enumerate(text_lower):
        if pattern_idx < len(pattern_lower) and char == pattern_lower[pattern_idx]:
            pattern_idx += 1
            if last_match_idx == i - 1:
                score += 10
            if word_boundary:
                score += 15
            last_match_idx = i
            score += 5
        word_boundary = char in " _-./\\"

    if pattern_idx == len(pattern_lower):
        return True, score
    return False, 0


def _command_item(spec: CommandSpec, ctx: CommandContext) -> PaletteItem:
    reason = spec.is_disabled(ctx)
    return PaletteItem(
        label=spec.name,
        description=reason or spec.description,
        command=spec.name,
        disabled=bool(reason),
    )


def _matching_commands(
    registry: CommandRegistry, ctx: CommandContext, text: str
) -> list[PaletteItem]:
    specs = registry.commands(palette_only=True)
    token = text.strip()
    if token.startswith("/"):
        matches = [
            s for s in specs
            if s.name.startswith(token) or any(a.startswith(token) for a in s.aliases)
        ]
    elif token:
        scored = []
        for spec in specs:
            name_ok, name_score = fuzzy_match(token, spec.name)
            desc_ok, desc_score = fuzzy_match(token, spec.description)
            if name_ok or desc_ok:
                scored.append((name_score * 3 + desc_score, spec))
        scored.sort(key=lambda pair: -pair[0])
        matches = [spec for _, spec in scored]
    else:
        matches = specs
    if not matches:
        return [PaletteItem(label="No matching commands", description="Esc to close", disabled=True)]
    return [_command_item(spec, ctx) for spec in matches]


def _argument_hints(
    spec: CommandSpec, ctx: CommandContext, rest: str
) -> list[PaletteItem]:
    if spec.hints is None:
        return [
            PaletteItem(
                label=spec.usage or spec.name,
                description="Press Enter to run",
                disabled=True,
            )
        ]
    args = rest.split()
    partial = "" if rest.endswith(" ") or not args else args[-1]
    complete_args = args[:-1] if partial else args
    hints = spec.hints(ctx, complete_args)
    partial_lower = partial.lower()
    items = [
        PaletteItem(label=h.label, description=h.description, insert=h.insert)
        for h in hints
        if not partial_lower or h.label.lower().startswith(partial_lower)
    ]
    if not items:
        return [
            PaletteItem(
                label=spec.usage or spec.name,
                description="No suggestions; press Enter to run",
                disabled=True,
            )
        ]
    return items


def _model_items(
    models: list[str], current: str, loading: bool, error: str | None
) -> list[PaletteItem]:
    if loading:
        return [PaletteItem(label="Loading models...", disabled=True)]
    if error:
        return [PaletteItem(label="Could not load models", description=error, disabled=True)]
    if not models:
        return [PaletteItem(label="No models available", disabled=True)]
    return [
        PaletteItem(label=m, description="current" if m == current else "", model=m)
        for m in models
    ]


def build_palette_items(
    registry: CommandRegistry,
    ctx: CommandContext,
    text: str,
    view: PaletteView = PaletteView.COMMANDS,
    models: list[str] | None = None,
    models_loading: bool = False,
    models_error: str | None = None,
) -> list[PaletteItem]:
    """Compute the visible palette rows for the current input line."""
    if view == PaletteView.MODELS:
        return _model_items(models or [], ctx.resolved.model, models_loading, models_error)

    stripped = text.lstrip()
    if stripped.startswith("/") and " " in stripped:
        name, _, rest = stripped.partition(" ")
        spec = registry.get(name)
        if spec is not None:
            return _argument_hints(spec, ctx, rest)
        return [PaletteItem(label="No matching commands", description="Esc to close", disabled=True)]
    return _matching_commands(registry, ctx, stripped)


def has_arguments(text: str) -> bool:
    """True once something follows the command token."""
    _, _, rest = text.strip().partition(" ")
    return bool(rest.strip())
