import logging
import re
from typing import Callable, List, Literal, Optional

from storyengine.core.models import Feedback, QuizData, QuizQuestion, QuizResult, QuizSettings, UserAnswer
from storyengine.services.quiz_generation import generate_quiz

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

SCORE_MESSAGES = (
    (90, "Wow! You're a Math Superstar!"),
    (60, "Great Job! Keep practicing!"),
    (0, "Good effort! Practice makes perfect!"),
)

def parse_answer(text: str) -> int:
    """Leading integer of the typed answer, the way a number pad reads it."""
    m = _LEADING_INT.match(text)
    if not m:
        raise ValueError(f"Not a number: {text!r}")
    return int(m.group(1))

def score_message(percentage: int) -> str:
    for threshold, message in SCORE_MESSAGES:
        if percentage >= threshold:
            return message
    return SCORE_MESSAGES[-1][1]

def summarize(answers: List[UserAnswer]) -> QuizResult:
    correct = sum(1 for a in answers if a.is_correct)
    total = len(answers)
    pct = int(correct * 100 / total + 0.5) if total else 0
    return QuizResult(
        correct_count=correct,
        total_count=total,
        score_percentage=pct,
        message=score_message(pct),
        answers=tuple(answers),
    )


class QuizRunner:
    """
    Walks one quiz: setup → quiz → results. Each question is answered
    once, feedback is shown, then the runner advances.
    """

    def __init__(self, generator: Callable[[QuizSettings], QuizData] = generate_quiz):
        self.generator = generator
        self.phase: Literal["setup", "quiz", "results"] = "setup"
        self.quiz: Optional[QuizData] = None
        self.index = 0
        self.answers: List[UserAnswer] = []
        self.feedback: Optional[Feedback] = None

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.phase != "quiz" or self.quiz is None:
            return None
        return self.quiz.questions[self.index]

    @property
    def is_last_question(self) -> bool:
        return self.quiz is not None and self.index >= len(self.quiz.questions) - 1

    def start(self, quiz_settings: QuizSettings) -> QuizData:
        # generation errors propagate; the runner stays in setup
        data = self.generator(quiz_settings)
        self.quiz = data
        self.index = 0
        self.answers = []
        self.feedback = None
        self.phase = "quiz"
        return data

    def submit(self, answer_text: str) -> Optional[Feedback]:
        if self.phase != "quiz":
            raise RuntimeError("No quiz in progress.")
        if self.feedback is not None:
            # feedback already showing: the same button moves on
            self.advance()
            return None
        if not answer_text or not answer_text.strip():
            return None

        question = self.current_question
        value = parse_answer(answer_text)
        correct = value == question.correct_answer
        self.answers.append(UserAnswer(
            question=question.expression,
            user_answer=value,
            correct_answer=question.correct_answer,
            is_correct=correct,
        ))
        if correct:
            self.feedback = Feedback(True, "Correct!")
        else:
            self.feedback = Feedback(False, f"Oops! The answer is {_fmt(question.correct_answer)}")
        logger.debug("Q%d %s: %s", question.question_number, "correct" if correct else "wrong", answer_text)
        return self.feedback

    def advance(self) -> None:
        if self.phase != "quiz":
            raise RuntimeError("No quiz in progress.")
        self.feedback = None
        if self.is_last_question:
            self.phase = "results"
        else:
            self.index += 1

    def result(self) -> QuizResult:
        return summarize(self.answers)

    def restart(self) -> None:
        self.phase = "setup"
        self.quiz = None
        self.index = 0
        self.answers = []
        self.feedback = None


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
