import logging
from typing import Callable, List, Optional

from storyengine.core.errors import (
    ContinueFailure,
    EditFailure,
    GenerationError,
    InvalidStoryAction,
    StartFailure,
    StateOutcome,
)
from storyengine.core.history import HistoryStore
from storyengine.core.models import CHOICES_PER_STEP, GeneratedStep, PresentationMode, StorySnapshot, StoryStep
from storyengine.core.utils import next_step_id
from storyengine.services.story_generation import OllamaStoryGenerator, StoryGenerator

logger = logging.getLogger(__name__)

START_FAILED = "Failed to start the story. Please check your connection and try again."
CONTINUE_FAILED = "Failed to continue the story. Please try again."
EDIT_FAILED = "Failed to update the story from this point. Please try again."

class StoryController:
    """
    Owns the story history and presentation mode. One operation at a
    time: callers must not issue a second call while one is running.
    """

    def __init__(self, generator: Optional[StoryGenerator] = None):
        self.generator: StoryGenerator = generator or OllamaStoryGenerator()
        self.history = HistoryStore()
        self.mode = PresentationMode.SETUP
        self.protagonist = ""
        self.setting = ""
        self.error: Optional[str] = None
        self._last_id: Optional[int] = None

    # ——— read side ——————————————————————————————————————————

    @property
    def has_story(self) -> bool:
        return not self.history.is_empty

    @property
    def current_step(self) -> Optional[StoryStep]:
        return self.history.last

    def snapshot(self) -> StorySnapshot:
        return StorySnapshot(
            mode=self.mode,
            steps=self.history.steps,
            protagonist=self.protagonist,
            setting=self.setting,
            error=self.error,
        )

    def editable_choices(self, step_index: int) -> List[int]:
        """Alternative choices for a past decision; empty for the open frontier."""
        step = self.history[step_index]
        if not step.is_decided:
            return []
        return [i for i in range(len(step.choices)) if i != step.selected_choice_index]

    # ——— operations ————————————————————————————————————————

    def start_story(self, protagonist: str, setting: str) -> StoryStep:
        self.error = None
        protagonist = (protagonist or "").strip()
        setting = (setting or "").strip()
        if not protagonist or not setting:
            raise InvalidStoryAction("Both a protagonist and a setting are required.")

        try:
            step = self._generate(self.generator.generate_initial, protagonist, setting)
        except GenerationError as e:
            logger.error("Story start failed: %s", e)
            self.error = START_FAILED
            raise StartFailure(START_FAILED) from e

        self.protagonist = protagonist
        self.setting = setting
        self.history.clear()
        self.history.append(step)
        self.mode = PresentationMode.PLAYING
        logger.info("Started story for %r in %r", protagonist, setting)
        return step

    def select_choice(self, choice_index: int) -> StoryStep:
        self.error = None
        if not self.history.has_frontier:
            raise InvalidStoryAction("There is no open decision to make.")
        last_index = len(self.history) - 1
        self.history.set_choice(last_index, choice_index)

        try:
            step = self._generate_next()
        except GenerationError as e:
            logger.error("Story continuation failed: %s", e)
            self.history.clear_choice(last_index)
            self.error = CONTINUE_FAILED
            raise ContinueFailure(CONTINUE_FAILED) from e

        return self.history.append(step)

    def edit_choice(self, step_index: int, new_choice_index: int) -> Optional[StoryStep]:
        self.error = None
        step = self.history[step_index]
        if step.selected_choice_index == new_choice_index:
            return None

        # validates the choice before anything is dropped
        self.history.set_choice(step_index, new_choice_index)
        self.mode = PresentationMode.PLAYING
        dropped = self.history.truncate_after(step_index)
        logger.info("Rewrote decision at step %d, dropped %d later step(s)", step_index, len(dropped))

        try:
            step = self._generate_next()
        except GenerationError as e:
            # the truncated history with the new choice stays in place
            logger.error("Regeneration after edit failed: %s", e)
            self.error = EDIT_FAILED
            raise EditFailure(EDIT_FAILED) from e

        return self.history.append(step)

    def resume(self) -> StoryStep:
        """
        Generate the missing next step when the last step is decided but
        nothing follows it, which is where a failed edit leaves the story.
        """
        self.error = None
        last = self.history.last
        if last is None or not last.is_decided:
            raise InvalidStoryAction("Nothing to resume.")

        try:
            step = self._generate_next()
        except GenerationError as e:
            logger.error("Resume failed: %s", e)
            self.error = CONTINUE_FAILED
            raise ContinueFailure(CONTINUE_FAILED, outcome=StateOutcome.PRESERVED) from e

        self.mode = PresentationMode.PLAYING
        return self.history.append(step)

    def reset(self) -> None:
        self.history.clear()
        self.protagonist = ""
        self.setting = ""
        self.error = None
        self.mode = PresentationMode.SETUP

    def show(self, mode: PresentationMode) -> PresentationMode:
        mode = PresentationMode(mode)
        if mode is PresentationMode.SETUP:
            if self.has_story:
                raise InvalidStoryAction("A story is in progress; reset it to return to setup.")
        elif not self.has_story:
            raise InvalidStoryAction(f"Nothing to show in {mode.value} mode before a story starts.")
        self.mode = mode
        return self.mode

    # ——— generation ————————————————————————————————————————

    def _generate_next(self) -> StoryStep:
        return self._generate(
            self.generator.generate_next, self.protagonist, self.setting, self.history.to_history()
        )

    def _generate(self, call: Callable[..., GeneratedStep], *args) -> StoryStep:
        """Run one backend call; every failure comes out as GenerationError."""
        try:
            generated = call(*args)
        except GenerationError:
            raise
        except Exception as e:
            logger.exception("Story backend raised %s", type(e).__name__)
            raise GenerationError(f"Story backend failed: {e}") from e
        return self._new_step(generated)

    def _new_step(self, generated: GeneratedStep) -> StoryStep:
        choices = [str(c).strip() for c in generated.choices]
        if len(choices) != CHOICES_PER_STEP or not all(choices):
            raise GenerationError(f"Expected {CHOICES_PER_STEP} non-blank choices, got {len(choices)}")
        if len({c.casefold() for c in choices}) != len(choices):
            raise GenerationError("Generated choices are not distinct")
        if not generated.narrative_text.strip():
            raise GenerationError("Generated step has no story text")

        self._last_id = next_step_id(self._last_id)
        return StoryStep(
            id=self._last_id,
            narrative_text=generated.narrative_text,
            image_reference=generated.image_reference,
            choices=choices,
            selected_choice_index=None,
            image_prompt_text=generated.image_prompt_text,
        )
