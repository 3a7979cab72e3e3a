import json
import logging
from typing import List, Optional, Protocol, Sequence

from pydantic import BaseModel, ValidationError, field_validator

from storyengine.core.errors import GenerationError
from storyengine.core.models import CHOICES_PER_STEP, GeneratedStep, HistoryEntry
from storyengine.core.settings import settings
from storyengine.core.utils import clip, extract_json, format_history
from storyengine.services.image_client import ImageClient, image_client
from storyengine.services.ollama_client import OllamaClient, ollama_client

logger = logging.getLogger(__name__)

# ——— Response schema ———————————————————————————————————————

class StoryPayload(BaseModel):
    story: str
    choices: List[str]

    @field_validator("story")
    @classmethod
    def _story_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("story is empty")
        return v

    @field_validator("choices")
    @classmethod
    def _three_distinct_choices(cls, v: List[str]) -> List[str]:
        v = [c.strip() for c in v]
        if len(v) != CHOICES_PER_STEP:
            raise ValueError(f"expected {CHOICES_PER_STEP} choices, got {len(v)}")
        if any(not c for c in v):
            raise ValueError("blank choice")
        if len({c.casefold() for c in v}) != len(v):
            raise ValueError("choices are not distinct")
        return v

def decode_story_payload(raw: str) -> StoryPayload:
    """Strict decode of a model response; any mismatch is a GenerationError."""
    try:
        return StoryPayload.model_validate(json.loads(extract_json(raw)))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Story parse error: %s\nRaw: %s", e, raw)
        raise GenerationError("Model returned an unusable story step") from e

# ——— Prompts ———————————————————————————————————————————————

SYSTEM_PROMPT = (
    "You are a storyteller writing an interactive, choose-your-own-adventure "
    "story for children. Keep it warm, vivid and age appropriate. "
    "Reply with exactly one JSON object with keys: "
    '"story" (one paragraph of 80-120 words) and '
    '"choices" (an array of exactly 3 short, distinct options for what the protagonist does next).'
)

INITIAL_PROMPT = (
    "{system}\n"
    "Protagonist: {protagonist}\n"
    "Setting: {setting}\n"
    "Write the opening paragraph that introduces the protagonist in the setting "
    "and ends on a situation that calls for a decision."
)

NEXT_PROMPT = (
    "{system}\n"
    "Protagonist: {protagonist}\n"
    "Setting: {setting}\n"
    "The story so far:\n{history}\n"
    "Continue the story from the last choice made. Do not repeat earlier paragraphs."
)

IMAGE_PROMPT = (
    "Children's storybook illustration, soft colours, whimsical. "
    "{protagonist} in {setting}. Scene: {scene}"
)
IMAGE_SCENE_CHARS = 300

def build_initial_prompt(protagonist: str, setting: str) -> str:
    return INITIAL_PROMPT.format(system=SYSTEM_PROMPT, protagonist=protagonist, setting=setting)

def build_next_prompt(protagonist: str, setting: str, history: Sequence[HistoryEntry]) -> str:
    return NEXT_PROMPT.format(
        system=SYSTEM_PROMPT,
        protagonist=protagonist,
        setting=setting,
        history=format_history(history),
    )

def build_image_prompt(protagonist: str, setting: str, story: str) -> str:
    return IMAGE_PROMPT.format(
        protagonist=protagonist,
        setting=setting,
        scene=clip(story, IMAGE_SCENE_CHARS),
    )

# ——— Collaborator —————————————————————————————————————————

class StoryGenerator(Protocol):
    """Produces story steps. Raises GenerationError on any failure."""

    def generate_initial(self, protagonist: str, setting: str) -> GeneratedStep:
        ...

    def generate_next(
        self, protagonist: str, setting: str, history: Sequence[HistoryEntry]
    ) -> GeneratedStep:
        ...


class OllamaStoryGenerator:
    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        images: Optional[ImageClient] = None,
        temperature: Optional[float] = None,
    ):
        self.client = client or ollama_client
        self.images = images or image_client
        self.temperature = settings.story_temperature if temperature is None else temperature

    def generate_initial(self, protagonist: str, setting: str) -> GeneratedStep:
        return self._generate(build_initial_prompt(protagonist, setting), protagonist, setting)

    def generate_next(
        self, protagonist: str, setting: str, history: Sequence[HistoryEntry]
    ) -> GeneratedStep:
        if not history:
            raise GenerationError("Cannot continue a story without history")
        return self._generate(build_next_prompt(protagonist, setting, history), protagonist, setting)

    def _generate(self, prompt: str, protagonist: str, setting: str) -> GeneratedStep:
        try:
            raw = self.client.generate(prompt=prompt, temperature=self.temperature)
        except Exception as e:  # any backend error
            logger.exception("Story generation request failed: %s", e)
            raise GenerationError("Could not reach the story model") from e

        payload = decode_story_payload(raw)
        image_prompt = build_image_prompt(protagonist, setting, payload.story)
        image_ref = self.images.reference_for(image_prompt)
        return GeneratedStep(
            narrative_text=payload.story,
            choices=tuple(payload.choices),
            image_reference=image_ref,
            image_prompt_text=image_prompt,
        )
