from __future__ import annotations
from enum import Enum


class StateOutcome(str, Enum):
    """What a failed story operation left behind."""
    PRESERVED = "preserved"   # nothing changed
    REVERTED = "reverted"     # a tentative change was rolled back
    PARTIAL = "partial"       # part of the change was kept


class StoryError(Exception):
    """Base class for everything the story engine raises."""


class InvalidStoryAction(StoryError, ValueError):
    """Rejected arguments or an operation that is not allowed right now."""


class OutOfRange(InvalidStoryAction, IndexError):
    pass


class InvalidChoice(InvalidStoryAction):
    pass


class GenerationError(StoryError):
    """The generation backend could not produce a usable step."""


class StoryFailure(StoryError):
    """
    A generation failure mapped to a user-facing message, together with
    what happened to the history that was being changed.
    """
    outcome: StateOutcome = StateOutcome.PRESERVED

    def __init__(self, message: str, outcome: StateOutcome | None = None):
        super().__init__(message)
        self.message = message
        if outcome is not None:
            self.outcome = outcome


class StartFailure(StoryFailure):
    outcome = StateOutcome.PRESERVED


class ContinueFailure(StoryFailure):
    outcome = StateOutcome.REVERTED


class EditFailure(StoryFailure):
    outcome = StateOutcome.PARTIAL


class QuizGenerationError(Exception):
    pass
