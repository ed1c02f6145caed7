"""
Grading engine

Pure functions mapping a (question, submitted answer) pair to correctness and
awarded marks. Identical inputs always produce identical output, which is
what makes re-grading stored attempts safe.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from assessment.models.quiz import QuestionKind

CHOICE_KINDS = (QuestionKind.MULTIPLE_CHOICE, QuestionKind.TRUE_FALSE)


@dataclass(frozen=True)
class GradeResult:
    is_correct: bool
    marks_awarded: float


@dataclass
class GradedSubmission:
    """Outcome of grading a whole answer sheet"""

    answers: List[Dict[str, Any]] = field(default_factory=list)
    total_marks_obtained: float = 0.0
    correct_count: int = 0

    def percentage_of(self, total_marks: float) -> float:
        return percentage_of(self.total_marks_obtained, total_marks)


def percentage_of(obtained: float, total_marks: float) -> float:
    """Share of total marks as a percentage, clamped into [0, 100]"""
    if not total_marks or total_marks <= 0:
        return 0.0
    percentage = obtained / total_marks * 100
    return min(max(percentage, 0.0), 100.0)


def _option_text(option: Any) -> Optional[str]:
    if isinstance(option, dict):
        return option.get("text")
    return getattr(option, "text", None)


def _option_is_correct(option: Any) -> bool:
    if isinstance(option, dict):
        return bool(option.get("is_correct"))
    return bool(getattr(option, "is_correct", False))


def _kind_of(question) -> Optional[QuestionKind]:
    try:
        return QuestionKind(question.kind)
    except ValueError:
        return None


def grade_answer(question, submitted_answer: Any) -> GradeResult:
    """
    Grade one answer against one question

    Choice questions match option text exactly; short answers compare
    case-insensitively after trimming. Anything unusable scores zero.
    """
    if not isinstance(submitted_answer, str):
        return GradeResult(is_correct=False, marks_awarded=0.0)

    kind = _kind_of(question)
    is_correct = False

    if kind in CHOICE_KINDS:
        for option in question.options or []:
            if _option_text(option) == submitted_answer:
                is_correct = _option_is_correct(option)
                break
    elif kind == QuestionKind.SHORT_ANSWER:
        expected = question.correct_answer
        if expected is not None and submitted_answer.strip():
            is_correct = submitted_answer.strip().lower() == expected.strip().lower()

    return GradeResult(
        is_correct=is_correct,
        marks_awarded=float(question.marks) if is_correct else 0.0,
    )


def grade_submission(questions: Iterable, answers: Iterable[Dict[str, Any]]) -> GradedSubmission:
    """
    Grade a list of ``{"question_id", "submitted_answer"}`` entries

    Answers naming an unknown question are kept with zero marks instead of
    rejecting the whole submission. Only the first answer to a question counts.
    """
    by_id = {question.id: question for question in questions}
    seen = set()
    graded = GradedSubmission()

    for answer in answers:
        question_id = answer.get("question_id")
        submitted = answer.get("submitted_answer")
        question = by_id.get(question_id)

        if question is None or question_id in seen:
            result = GradeResult(is_correct=False, marks_awarded=0.0)
        else:
            result = grade_answer(question, submitted)
            seen.add(question_id)

        graded.answers.append(
            {
                "question_id": question_id,
                "submitted_answer": submitted,
                "is_correct": result.is_correct,
                "marks_awarded": result.marks_awarded,
            }
        )
        graded.total_marks_obtained += result.marks_awarded
        if result.is_correct:
            graded.correct_count += 1

    return graded
