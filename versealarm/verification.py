"""Typing challenge that has to be completed to dismiss a ringing alarm."""

import logging
from collections.abc import Callable
from enum import Enum

from .models import Passage

logger = logging.getLogger(__name__)


class InputResult(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    IGNORED = "ignored"


class VerificationSession:
    """Tracks the typed prefix and mistakes for one ringing episode.

    The typed text is always a literal prefix of the passage text. An input
    that would diverge from the passage is rejected and counted as a mistake.
    """

    def __init__(self, passage: Passage):
        self.passage = passage
        self.typed_prefix = ""
        self.mistake_count = 0
        self.completed = False

    @property
    def text(self) -> str:
        return self.passage.text

    @property
    def progress(self) -> float:
        return len(self.typed_prefix) / len(self.text)

    @property
    def accuracy(self) -> float:
        typed = len(self.typed_prefix)
        if typed == 0:
            return 0.0 if self.mistake_count else 1.0
        return typed / (typed + self.mistake_count)

    @property
    def progress_percent(self) -> int:
        return round(self.progress * 100)

    @property
    def accuracy_percent(self) -> int:
        percent = round(self.accuracy * 100)
        if self.mistake_count and percent == 100:
            return 99
        return percent

    def submit(self, value: str) -> InputResult:
        """Offer the full contents of the input field after one edit."""
        if self.completed:
            return InputResult.IGNORED

        k = len(self.typed_prefix)
        if len(value) <= len(self.text):
            if len(value) <= k and self.typed_prefix.startswith(value):
                self.typed_prefix = value
                return InputResult.ACCEPTED
            if (
                len(value) == k + 1
                and value.startswith(self.typed_prefix)
                and value[k] == self.text[k]
            ):
                self.typed_prefix = value
                if self.typed_prefix == self.text:
                    self.completed = True
                    return InputResult.COMPLETED
                return InputResult.ACCEPTED

        self.mistake_count += 1
        return InputResult.REJECTED


class VerificationGate:
    """Feeds input to a session and reports rejections and completion."""

    def __init__(
        self,
        session: VerificationSession,
        on_complete: Callable[[], None] | None = None,
        on_reject: Callable[[], None] | None = None,
    ):
        self.session = session
        self.on_complete = on_complete
        self.on_reject = on_reject

    def submit(self, value: str) -> InputResult:
        result = self.session.submit(value)
        if result is InputResult.REJECTED:
            logger.debug(f"Rejected input (mistakes={self.session.mistake_count})")
            if self.on_reject:
                self.on_reject()
        elif result is InputResult.COMPLETED:
            logger.info(
                f"Challenge completed: {self.session.passage.short_reference} "
                f"(accuracy {self.session.accuracy_percent}%)"
            )
            if self.on_complete:
                self.on_complete()
        return result

    def type_characters(self, chars: str) -> InputResult:
        """Feed line-buffered input one keystroke at a time."""
        result = InputResult.IGNORED
        for ch in chars:
            result = self.submit(self.session.typed_prefix + ch)
            if result in (InputResult.COMPLETED, InputResult.IGNORED):
                break
        return result
