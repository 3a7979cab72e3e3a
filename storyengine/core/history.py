from __future__ import annotations
import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import InvalidChoice, InvalidStoryAction, OutOfRange
from .models import HistoryEntry, NO_CHOICE, StoryStep

logger = logging.getLogger(__name__)

class HistoryStore:
    """
    Ordered, linear chain of story steps.

    Every step but the last is decided. The last one may still be open
    (the frontier). Branching happens by truncating and regenerating,
    never by keeping siblings around.
    """

    def __init__(self, steps: Iterable[StoryStep] = ()):
        self._steps: List[StoryStep] = []
        self.replace(steps)

    # ——— read access ————————————————————————————————————————

    @property
    def steps(self) -> Tuple[StoryStep, ...]:
        return tuple(self._steps)

    @property
    def last(self) -> Optional[StoryStep]:
        return self._steps[-1] if self._steps else None

    @property
    def is_empty(self) -> bool:
        return not self._steps

    @property
    def has_frontier(self) -> bool:
        return bool(self._steps) and self._steps[-1].selected_choice_index is None

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StoryStep]:
        return iter(tuple(self._steps))

    def __getitem__(self, index: int) -> StoryStep:
        return self._steps[self._check_index(index)]

    def to_history(self) -> List[HistoryEntry]:
        return [
            HistoryEntry(
                narrative_text=step.narrative_text,
                choice_made=step.selected_choice if step.is_decided else NO_CHOICE,
            )
            for step in self._steps
        ]

    # ——— mutation ———————————————————————————————————————————

    def append(self, step: StoryStep) -> StoryStep:
        if self.has_frontier:
            raise InvalidStoryAction("Cannot append while the last step is still undecided.")
        step.selected_choice_index = None
        self._steps.append(step)
        logger.debug("Appended step %s (history length %d)", step.id, len(self._steps))
        return step

    def set_choice(self, index: int, choice_index: int) -> StoryStep:
        step = self._steps[self._check_index(index)]
        if not isinstance(choice_index, int) or not 0 <= choice_index < len(step.choices):
            raise InvalidChoice(
                f"Choice {choice_index!r} is not valid for step {index} "
                f"({len(step.choices)} choices)"
            )
        step.selected_choice_index = choice_index
        return step

    def clear_choice(self, index: int) -> StoryStep:
        index = self._check_index(index)
        if index != len(self._steps) - 1:
            raise InvalidStoryAction("Only the last step can be reopened.")
        step = self._steps[index]
        step.selected_choice_index = None
        return step

    def truncate_after(self, index: int) -> List[StoryStep]:
        index = self._check_index(index)
        dropped = self._steps[index + 1:]
        del self._steps[index + 1:]
        if dropped:
            logger.debug("Truncated %d step(s) after index %d", len(dropped), index)
        return dropped

    def replace(self, steps: Iterable[StoryStep]) -> None:
        steps = list(steps)
        for step in steps[:-1]:
            if step.selected_choice_index is None:
                raise InvalidStoryAction("Only the last step may be undecided.")
        self._steps = steps

    def clear(self) -> None:
        self._steps = []

    def _check_index(self, index: int) -> int:
        if not isinstance(index, int) or not 0 <= index < len(self._steps):
            raise OutOfRange(f"Step index {index!r} out of range (history length {len(self._steps)})")
        return index
