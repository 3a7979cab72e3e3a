from __future__ import annotations

import json

import pytest

from storyengine.core.errors import QuizGenerationError
from storyengine.core.models import ClassLevel, Operation, QuizData, QuizQuestion, QuizSettings
from storyengine.services.quiz_generation import (
    build_quiz_prompt,
    class_level_guidance,
    decode_quiz,
    generate_quiz,
)
from storyengine.services.quiz_runner import QuizRunner, parse_answer, summarize


class _FakeClient:
    def __init__(self, raw: str | Exception) -> None:
        self.raw = raw

    def generate(self, prompt: str, temperature: float = 0.8, **kwargs: object) -> str:
        if isinstance(self.raw, Exception):
            raise self.raw
        return self.raw


def _quiz() -> QuizData:
    return QuizData(
        questions=(
            QuizQuestion(1, "5 + 3", 8),
            QuizQuestion(2, "9 - 2", 7),
        ),
        instructions="You can do it!",
    )


def test_toggle_operation_rules() -> None:
    qs = QuizSettings()
    assert qs.toggle_operation(Operation.SUBTRACTION) == [Operation.ADDITION, Operation.SUBTRACTION]
    assert qs.toggle_operation(Operation.MIXED) == [Operation.MIXED]
    assert qs.toggle_operation(Operation.DIVISION) == [Operation.DIVISION]
    assert qs.toggle_operation(Operation.DIVISION) == [Operation.ADDITION]


def test_quiz_settings_validation() -> None:
    with pytest.raises(ValueError):
        QuizSettings(num_questions=7)
    with pytest.raises(ValueError):
        QuizSettings(operations=[])
    with pytest.raises(ValueError):
        QuizSettings(level="P9")
    assert QuizSettings(level="P3").level is ClassLevel.P3


def test_prompt_carries_level_guidance_and_operations() -> None:
    qs = QuizSettings(level=ClassLevel.P3, operations=[Operation.MULTIPLICATION, Operation.DIVISION], num_questions=10)
    prompt = build_quiz_prompt(qs)
    assert "Class Level: P3" in prompt
    assert "Multiplication, Division" in prompt
    assert "Number of Exercises: 10" in prompt
    assert class_level_guidance("P3") in prompt
    assert class_level_guidance("K1").startswith("General arithmetic")


def test_generate_quiz_decodes_and_renumbers() -> None:
    raw = json.dumps(
        {
            "questions": [
                {"question_number": 4, "expression": " 12 + 5 ", "correct_answer": 17},
                {"question_number": 9, "expression": "3 * 5", "correct_answer": 15.0},
            ],
            "instructions": "Have fun!",
        }
    )
    data = generate_quiz(QuizSettings(), client=_FakeClient(raw))
    assert [q.question_number for q in data.questions] == [1, 2]
    assert data.questions[0].expression == "12 + 5"
    assert data.instructions == "Have fun!"


@pytest.mark.parametrize(
    "raw",
    [
        "oops",
        json.dumps({"questions": [], "instructions": "x"}),
        json.dumps({"questions": [{"expression": "1 + 1"}], "instructions": "x"}),
    ],
)
def test_decode_quiz_rejects_bad_payloads(raw: str) -> None:
    with pytest.raises(QuizGenerationError):
        decode_quiz(raw)


def test_generate_quiz_maps_transport_errors() -> None:
    with pytest.raises(QuizGenerationError, match="AI might be busy"):
        generate_quiz(QuizSettings(), client=_FakeClient(ConnectionError("down")))


def test_parse_answer_reads_leading_integer() -> None:
    assert parse_answer("42") == 42
    assert parse_answer(" -3 ") == -3
    assert parse_answer("12abc") == 12
    with pytest.raises(ValueError):
        parse_answer("abc")


def test_runner_full_flow_and_scoring() -> None:
    runner = QuizRunner(generator=lambda settings: _quiz())
    runner.start(QuizSettings())
    assert runner.phase == "quiz"
    assert runner.current_question.expression == "5 + 3"

    assert runner.submit("") is None
    feedback = runner.submit("8")
    assert feedback.correct and feedback.message == "Correct!"
    runner.advance()

    feedback = runner.submit("6")
    assert not feedback.correct
    assert feedback.message == "Oops! The answer is 7"
    assert runner.is_last_question
    runner.submit("ignored: advances because feedback is showing")
    assert runner.phase == "results"

    result = runner.result()
    assert (result.correct_count, result.total_count, result.score_percentage) == (1, 2, 50)
    assert result.message == "Good effort! Practice makes perfect!"

    runner.restart()
    assert runner.phase == "setup"
    assert runner.answers == []


def test_runner_stays_in_setup_when_generation_fails() -> None:
    def failing(settings: QuizSettings) -> QuizData:
        raise QuizGenerationError("nope")

    runner = QuizRunner(generator=failing)
    with pytest.raises(QuizGenerationError):
        runner.start(QuizSettings())
    assert runner.phase == "setup"
    assert runner.current_question is None


def test_score_message_tiers() -> None:
    runner = QuizRunner(generator=lambda settings: _quiz())
    assert summarize([]).score_percentage == 0
    runner.start(QuizSettings())
    runner.submit("8")
    runner.advance()
    runner.submit("7")
    result = runner.result()
    assert result.score_percentage == 100
    assert result.message == "Wow! You're a Math Superstar!"


def test_decode_quiz_rejects_blank_expression() -> None:
    raw = json.dumps(
        {
            "questions": [{"question_number": 1, "expression": "   ", "correct_answer": 2}],
            "instructions": "x",
        }
    )
    with pytest.raises(QuizGenerationError):
        decode_quiz(raw)
