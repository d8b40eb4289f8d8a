"""Tutor TUI - the interactive chat screen.

Usage:
    from tutorcli.tui.app import run_tui

    await run_tui(storage, resolved, provider)

Components:
    TutorState - Session state store; every change notifies the app
    InputRouter - Keys and submissions to commands, pickers, and streams
    GuardedStream - Provider stream with abort fallback and late-chunk guard
    PracticeController - Vocabulary practice key handling
    TutorApp - prompt_toolkit host (tutorcli.tui.app)

Only the state store is imported here; the router, palette, and app import
the command registry, which itself depends on the state store.
"""

from .state import (
    CommandPaletteState,
    PracticeFeedback,
    PracticeItem,
    PracticeScore,
    StreamingState,
    TutorState,
    VocabPracticeState,
)

__all__ = [
    "CommandPaletteState",
    "PracticeFeedback",
    "PracticeItem",
    "PracticeScore",
    "StreamingState",
    "TutorState",
    "VocabPracticeState",
]
