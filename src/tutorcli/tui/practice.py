"""Key handling for the vocabulary practice view."""

import logging
import sqlite3
from collections.abc import Callable

from tutorcli.models import PracticeKind, Role
from tutorcli.storage import TutorStorage
from tutorcli.tui.state import PracticeItem, TutorState, VocabPracticeState

logger = logging.getLogger(__name__)

OPTION_KEYS = "abcd"

NoticeSink = Callable[[str, Role], None]


def option_letter(index: int) -> str:
    return OPTION_KEYS[index].upper()


def practice_hint(practice: VocabPracticeState) -> str:
    """Footer line telling the learner which keys apply right now."""
    if practice.feedback is not None:
        return "Press Enter or Space to continue | Esc to exit"
    if practice.kind == PracticeKind.FLASHCARD:
        if not practice.show_answer:
            return "Press Space to reveal"
        return "Press Y (correct) or N (incorrect)"
    if practice.kind == PracticeKind.TYPE_ANSWER:
        return "Type the word and press Enter | Esc to exit"
    return "Press A-D to choose, Enter to confirm | Esc to exit"


class PracticeController:
    """Maps keys to practice actions.

    Scores are recorded in the state store as soon as an answer is given;
    the mastery update in storage happens when the learner moves past the
    item, so each answer is persisted exactly once.
    """

    def __init__(self, state: TutorState, storage: TutorStorage, notify: NoticeSink) -> None:
        self.state = state
        self.storage = storage
        self._notify = notify

    def handle_key(self, key: str) -> bool:
        practice = self.state.vocab_practice
        if practice is None:
            return False
        if key == "escape":
            self.exit()
            return True
        if practice.feedback is not None:
            if key in ("enter", "space"):
                self.advance()
            return True

        if practice.kind == PracticeKind.FLASHCARD:
            self._flashcard_key(practice, key)
        elif practice.kind == PracticeKind.TYPE_ANSWER:
            self._type_answer_key(practice, key)
        else:
            self._multiple_choice_key(practice, key)
        return True

    def _flashcard_key(self, practice: VocabPracticeState, key: str) -> None:
        if not practice.show_answer:
            if key in ("space", "enter"):
                self.state.vocab_practice_toggle_answer()
            return
        if key.lower() == "y":
            self.state.vocab_practice_answer(True, "Marked as known.")
        elif key.lower() == "n":
            self.state.vocab_practice_answer(False, "Marked for review.")

    def _type_answer_key(self, practice: VocabPracticeState, key: str) -> None:
        item = practice.current
        if item is None:
            return
        if key == "enter":
            guess = practice.user_input.strip().lower()
            if not guess:
                return
            if guess == item.word.lower():
                self.state.vocab_practice_answer(True, "Correct!")
            else:
                self.state.vocab_practice_answer(False, f"Incorrect. The answer was: {item.word}")
        elif key == "backspace":
            self.state.vocab_practice_set_input(practice.user_input[:-1])
        elif key == "space":
            self.state.vocab_practice_set_input(practice.user_input + " ")
        elif len(key) == 1 and key.isprintable():
            self.state.vocab_practice_set_input(practice.user_input + key)

    def _multiple_choice_key(self, practice: VocabPracticeState, key: str) -> None:
        item = practice.current
        if item is None:
            return
        lowered = key.lower()
        if len(lowered) == 1 and lowered in OPTION_KEYS:
            index = OPTION_KEYS.index(lowered)
            if index < len(item.mc_options):
                self.state.vocab_practice_select_option(index)
        elif key == "enter" and practice.selected_option is not None:
            self._check_choice(item, practice.selected_option)

    def _check_choice(self, item: PracticeItem, selected: int) -> None:
        if selected == item.mc_correct_index:
            self.state.vocab_practice_answer(True, "Correct!")
            return
        letter = option_letter(item.mc_correct_index)
        answer = item.mc_options[item.mc_correct_index]
        self.state.vocab_practice_answer(False, f"Incorrect. The answer was {letter}) {answer}")

    def _record_mastery(self, practice: VocabPracticeState) -> None:
        item = practice.current
        if item is None or practice.feedback is None:
            return
        try:
            self.storage.update_vocab_mastery(item.id, practice.feedback.correct)
        except sqlite3.Error:
            logger.warning("Could not record mastery", exc_info=True, extra={"vocab_id": item.id})

    def advance(self) -> None:
        """Persist the current answer and move on."""
        practice = self.state.vocab_practice
        if practice is None or practice.feedback is None:
            return
        self._record_mastery(practice)
        finished = practice.is_last
        score = practice.score
        self.state.vocab_practice_next()
        if finished:
            self._notify(
                f"(Tip) Practice complete! Score: {score.correct}/{score.answered}",
                Role.ASSISTANT,
            )

    def exit(self) -> None:
        """Leave practice early, reporting the running score."""
        practice = self.state.vocab_practice
        if practice is None:
            return
        self._record_mastery(practice)
        score = practice.score
        self.state.end_vocab_practice()
        if score.answered:
            self._notify(
                f"(Tip) Practice ended. Score: {score.correct}/{score.answered}",
                Role.ASSISTANT,
            )
