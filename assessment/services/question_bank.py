"""Authoring-time validation and construction of quiz questions"""

import logging
from typing import Any, Dict, List, Sequence

from assessment.core.exceptions import ValidationException
from assessment.models.quiz import Question, QuestionKind

logger = logging.getLogger(__name__)

CHOICE_KINDS = (QuestionKind.MULTIPLE_CHOICE, QuestionKind.TRUE_FALSE)


def _as_dict(question) -> Dict[str, Any]:
    if hasattr(question, "model_dump"):
        return question.model_dump()
    return dict(question)


def question_errors(data: Dict[str, Any]) -> List[str]:
    """Return every rule a single question payload breaks"""
    errors = []

    if not str(data.get("text") or "").strip():
        errors.append("Question text is required")

    marks = data.get("marks")
    if not isinstance(marks, (int, float)) or isinstance(marks, bool) or marks <= 0:
        errors.append("Marks must be greater than zero")

    try:
        kind = QuestionKind(data.get("kind"))
    except ValueError:
        errors.append(f"Invalid question type: {data.get('kind')!r}")
        return errors

    if kind in CHOICE_KINDS:
        options = data.get("options") or []
        if not options:
            errors.append("Choice questions need at least one option")
        elif any(not str(opt.get("text") or "").strip() for opt in options):
            errors.append("Option text cannot be empty")
        elif not any(opt.get("is_correct") for opt in options):
            errors.append("At least one option must be marked correct")
    elif kind == QuestionKind.SHORT_ANSWER:
        if not str(data.get("correct_answer") or "").strip():
            errors.append("Short-answer questions need a correct answer")

    return errors


def validate_questions(questions: Sequence) -> List[Dict[str, Any]]:
    """
    Validate a question list for a quiz

    Raises ValidationException naming every failing question; returns the
    payloads as plain dicts.
    """
    if not questions:
        raise ValidationException("Quiz must have at least one question")

    payloads = [_as_dict(q) for q in questions]
    failures = []
    for index, data in enumerate(payloads):
        errors = question_errors(data)
        if errors:
            failures.append({"index": index, "errors": errors})

    if failures:
        logger.info("Rejected question list", extra={"failures": failures})
        raise ValidationException("Invalid questions", details={"errors": failures})

    return payloads


def build_questions(payloads: Sequence[Dict[str, Any]]) -> List[Question]:
    """Turn validated payloads into ordered Question rows"""
    questions = []
    for position, data in enumerate(payloads):
        kind = QuestionKind(data["kind"])
        options = []
        if kind in CHOICE_KINDS:
            options = [
                {"text": opt["text"], "is_correct": bool(opt.get("is_correct"))}
                for opt in data.get("options") or []
            ]
        questions.append(
            Question(
                position=position,
                text=data["text"].strip(),
                kind=kind,
                options=options,
                correct_answer=(
                    data.get("correct_answer") if kind == QuestionKind.SHORT_ANSWER else None
                ),
                marks=float(data["marks"]),
                explanation=data.get("explanation"),
            )
        )
    return questions
