import json
import logging
from typing import List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from storyengine.core.errors import QuizGenerationError
from storyengine.core.models import ClassLevel, QuizData, QuizQuestion, QuizSettings
from storyengine.core.settings import settings
from storyengine.core.utils import extract_json
from storyengine.services.ollama_client import OllamaClient, ollama_client

logger = logging.getLogger(__name__)

QUIZ_FAILED = "Failed to generate the quiz. The AI might be busy, please try again in a moment."

# ——— Response schema ———————————————————————————————————————

class QuestionPayload(BaseModel):
    question_number: int
    expression: str
    correct_answer: float

    @field_validator("expression")
    @classmethod
    def _expression_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("expression is empty")
        return v


class QuizPayload(BaseModel):
    questions: List[QuestionPayload]
    instructions: str

# ——— Prompt ————————————————————————————————————————————————

LEVEL_GUIDANCE = {
    ClassLevel.P1: "P1 (Ages 6-7): Focus on simple single-digit addition and subtraction. "
                   "Numbers up to 20. Example: 5 + 3, 9 - 2.",
    ClassLevel.P2: "P2 (Ages 7-8): Two-digit addition/subtraction without carrying/borrowing. "
                   "Introduce single-digit multiplication basics (2, 5, 10 times tables). "
                   "Example: 12 + 5, 28 - 11, 3 * 5.",
    ClassLevel.P3: "P3 (Ages 8-9): Two-digit addition/subtraction with carrying/borrowing. "
                   "Expand multiplication (up to 10x10) and introduce simple division. "
                   "Example: 37 + 45, 52 - 28, 7 * 8, 24 / 4.",
    ClassLevel.P4: "P4 (Ages 9-10): Multi-digit addition/subtraction. Two-digit by one-digit "
                   "multiplication. More complex division. Example: 345 + 189, 45 * 3, 125 / 5.",
    ClassLevel.P5: "P5 (Ages 10-11): Multi-digit multiplication (e.g., 2-digit by 2-digit). "
                   "Long division. Introduction to order of operations (BODMAS/PEMDAS) with two "
                   "operations. Example: 123 * 24, 456 / 12, 5 + 3 * 2.",
    ClassLevel.P6: "P6 (Ages 11-12): Complex multi-digit multiplication and division. Order of "
                   "operations with multiple steps. Example: 582 * 47, 2456 / 18, (10 + 5) * 3 - 2.",
}
GENERAL_GUIDANCE = "General arithmetic for elementary school children."

QUIZ_PROMPT = (
    "You are an intelligent and friendly arithmetic tutor for children aged 6-12.\n"
    "Generate a set of math problems based on the following criteria.\n"
    "- Class Level: {level}\n"
    "- Age/Complexity Guidance: {guidance}\n"
    "- Operation(s) to include: {operations}\n"
    "- Number of Exercises: {count}\n"
    "Instructions:\n"
    "1. Create {count} unique math problems that match the class level and operations.\n"
    '2. "expression" is the problem as shown to the child, e.g. "8 + 5" or "5 * (3 + 2)".\n'
    "3. Every answer must be a whole number.\n"
    '4. "instructions" is a short, encouraging message for the student.\n'
    "Reply with one JSON object: "
    '{{"questions": [{{"question_number": 1, "expression": "...", "correct_answer": 0}}], '
    '"instructions": "..."}}'
)

def class_level_guidance(level) -> str:
    try:
        return LEVEL_GUIDANCE[ClassLevel(level)]
    except ValueError:
        return GENERAL_GUIDANCE

def build_quiz_prompt(quiz: QuizSettings) -> str:
    return QUIZ_PROMPT.format(
        level=quiz.level.value,
        guidance=class_level_guidance(quiz.level),
        operations=", ".join(op.value for op in quiz.operations),
        count=quiz.num_questions,
    )

def decode_quiz(raw: str) -> QuizData:
    try:
        payload = QuizPayload.model_validate(json.loads(extract_json(raw)))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Quiz parse error: %s\nRaw: %s", e, raw)
        raise QuizGenerationError(QUIZ_FAILED) from e
    if not payload.questions:
        raise QuizGenerationError("AI returned no questions. Please try again.")

    questions = tuple(
        QuizQuestion(
            question_number=i,
            expression=q.expression.strip(),
            correct_answer=q.correct_answer,
        )
        for i, q in enumerate(payload.questions, start=1)
    )
    return QuizData(questions=questions, instructions=payload.instructions.strip())

def generate_quiz(quiz: QuizSettings, client: Optional[OllamaClient] = None) -> QuizData:
    client = client or ollama_client
    try:
        raw = client.generate(prompt=build_quiz_prompt(quiz), temperature=settings.quiz_temperature)
    except Exception as e:
        logger.exception("Error generating quiz: %s", e)
        raise QuizGenerationError(QUIZ_FAILED) from e

    data = decode_quiz(raw)
    if len(data.questions) != quiz.num_questions:
        logger.warning("Asked for %d questions, model returned %d", quiz.num_questions, len(data.questions))
    logger.info("Generated %d %s questions", len(data.questions), quiz.level.value)
    return data
