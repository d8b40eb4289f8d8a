"""Core enums and message types shared across the tutor."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Chat message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Difficulty(str, Enum):
    """Learner difficulty levels, in ascending order."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def ordered(cls) -> list[Difficulty]:
        return [cls.BEGINNER, cls.INTERMEDIATE, cls.ADVANCED]

    def step(self, delta: int) -> Difficulty:
        """Move ``delta`` levels, clamped to the ends of the scale."""
        levels = Difficulty.ordered()
        index = levels.index(self) + delta
        return levels[max(0, min(index, len(levels) - 1))]


class PracticeMode(str, Enum):
    """Conversation practice modes."""

    GENERAL = "general"
    GRAMMAR = "grammar"
    VOCAB = "vocab"
    ROLE_PLAY = "role-play"
    FLUENCY = "fluency"
    EXAM = "exam"


MODE_GUIDANCE: dict[PracticeMode, str] = {
    PracticeMode.GENERAL: "Balance conversation, corrections, and vocabulary suggestions.",
    PracticeMode.GRAMMAR: (
        "Prioritize grammar corrections with brief explanations and simple examples."
    ),
    PracticeMode.VOCAB: (
        "Focus on vocabulary. Suggest 3-5 useful words/phrases related to the topic. "
        "Format suggestions as: \U0001f4da word1, word2, word3 "
        "(comma-separated for easy saving with /save)."
    ),
    PracticeMode.ROLE_PLAY: "Lead a role-play scenario and stay in character while correcting gently.",
    PracticeMode.FLUENCY: "Prioritize flow; keep corrections minimal and summarize them at the end.",
    PracticeMode.EXAM: "Use IELTS/TOEFL-style prompts and give concise feedback after each reply.",
}


class ProviderName(str, Enum):
    """Supported chat backends."""

    OPENAI = "openai"
    GEMINI = "gemini"


class Status(str, Enum):
    """Global activity status shown in the status line."""

    IDLE = "idle"
    THINKING = "thinking"
    ERROR = "error"


class MainView(str, Enum):
    """Top-level views of the chat screen."""

    CHAT = "chat"
    HELP = "help"
    MODE_PICKER = "modePicker"
    MODELS_PICKER = "modelsPicker"
    SESSION_PICKER = "sessionPicker"
    VOCAB_PRACTICE = "vocabPractice"


class PaletteView(str, Enum):
    """What the command palette is listing."""

    COMMANDS = "commands"
    MODELS = "models"


class PaletteSource(str, Enum):
    """How the palette was opened."""

    SLASH = "slash"
    EXPLICIT = "explicit"


class PracticeKind(str, Enum):
    """Vocabulary practice styles."""

    FLASHCARD = "flashcard"
    TYPE_ANSWER = "type-answer"
    MULTIPLE_CHOICE = "multiple-choice"

    @property
    def label(self) -> str:
        return {
            PracticeKind.FLASHCARD: "Flashcard",
            PracticeKind.TYPE_ANSWER: "Type Answer",
            PracticeKind.MULTIPLE_CHOICE: "Multiple Choice",
        }[self]


class ExportFormat(str, Enum):
    """Conversation export formats."""

    MARKDOWN = "md"
    TEXT = "txt"
    JSON = "json"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ChatMessage:
    """A single conversation turn.

    ``notice`` marks display-only lines (command results, provider errors).
    Notices are shown to the learner but never persisted, exported, or sent
    to the provider. ``error`` styles a notice as a failure.
    """

    role: Role
    content: str
    id: str = field(default_factory=new_id)
    notice: bool = False
    error: bool = False

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


def conversation_messages(history: list[ChatMessage]) -> list[ChatMessage]:
    """Return the user/assistant turns of ``history``, skipping notices."""
    return [
        msg
        for msg in history
        if not msg.notice and msg.role in (Role.USER, Role.ASSISTANT)
    ]
