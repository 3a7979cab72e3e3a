from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

NO_CHOICE = "N/A"
CHOICES_PER_STEP = 3

# ——— Story ——————————————————————————————————————————————————

class PresentationMode(str, Enum):
    SETUP = "setup"
    PLAYING = "playing"
    HISTORY = "history"


@dataclass
class StoryStep:
    """
    One node of the branching story: the paragraph, its illustration,
    the three options offered and, once decided, which one was taken.
    """
    id: int
    narrative_text: str
    image_reference: str
    choices: List[str]
    selected_choice_index: Optional[int] = None
    image_prompt_text: str = ""

    @property
    def is_decided(self) -> bool:
        return self.selected_choice_index is not None

    @property
    def selected_choice(self) -> Optional[str]:
        if self.selected_choice_index is None:
            return None
        return self.choices[self.selected_choice_index]


@dataclass(frozen=True)
class GeneratedStep:
    """Content returned by a generation backend for a new step."""
    narrative_text: str
    choices: Tuple[str, ...]
    image_reference: str
    image_prompt_text: str


@dataclass(frozen=True)
class HistoryEntry:
    narrative_text: str
    choice_made: str = NO_CHOICE


@dataclass(frozen=True)
class StorySnapshot:
    mode: PresentationMode
    steps: Tuple[StoryStep, ...]
    protagonist: str = ""
    setting: str = ""
    error: Optional[str] = None

    @property
    def has_story(self) -> bool:
        return bool(self.steps)

    @property
    def current_step(self) -> Optional[StoryStep]:
        return self.steps[-1] if self.steps else None

# ——— Quiz ———————————————————————————————————————————————————

class ClassLevel(str, Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    P5 = "P5"
    P6 = "P6"


class Operation(str, Enum):
    ADDITION = "Addition"
    SUBTRACTION = "Subtraction"
    MULTIPLICATION = "Multiplication"
    DIVISION = "Division"
    MIXED = "Mixed"


NUM_QUESTIONS_OPTIONS: Tuple[int, ...] = (5, 10, 15, 20)


@dataclass
class QuizSettings:
    level: ClassLevel = ClassLevel.P1
    operations: List[Operation] = field(default_factory=lambda: [Operation.ADDITION])
    num_questions: int = 5

    def __post_init__(self):
        self.level = ClassLevel(self.level)
        self.operations = [Operation(op) for op in self.operations]
        if not self.operations:
            raise ValueError("Please select at least one operation.")
        if self.num_questions not in NUM_QUESTIONS_OPTIONS:
            raise ValueError(
                f"num_questions must be one of {NUM_QUESTIONS_OPTIONS}, got {self.num_questions}"
            )

    def toggle_operation(self, op: Operation) -> List[Operation]:
        """
        Mixed stands alone; picking any other operation drops Mixed.
        Deselecting the last operation falls back to Addition.
        """
        op = Operation(op)
        if op is Operation.MIXED:
            self.operations = [Operation.MIXED]
            return self.operations
        current = [o for o in self.operations if o is not Operation.MIXED]
        if op in current:
            current = [o for o in current if o is not op]
        else:
            current.append(op)
        self.operations = current or [Operation.ADDITION]
        return self.operations


@dataclass(frozen=True)
class QuizQuestion:
    question_number: int
    expression: str
    correct_answer: float


@dataclass(frozen=True)
class QuizData:
    questions: Tuple[QuizQuestion, ...]
    instructions: str


@dataclass(frozen=True)
class UserAnswer:
    question: str
    user_answer: int
    correct_answer: float
    is_correct: bool


@dataclass(frozen=True)
class Feedback:
    correct: bool
    message: str


@dataclass(frozen=True)
class QuizResult:
    correct_count: int
    total_count: int
    score_percentage: int
    message: str
    answers: Tuple[UserAnswer, ...] = ()
