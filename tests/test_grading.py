from types import SimpleNamespace

from assessment.services.grading import grade_answer, grade_submission, percentage_of


def mcq(id=1, marks=5):
    return SimpleNamespace(
        id=id,
        kind="multiple-choice",
        marks=marks,
        correct_answer=None,
        options=[
            {"text": "Paris", "is_correct": True},
            {"text": "Lyon", "is_correct": False},
        ],
    )


def short(id=3, answer="Paris", marks=2):
    return SimpleNamespace(id=id, kind="short-answer", marks=marks, correct_answer=answer, options=[])


def test_choice_answer_matches_option_text_exactly():
    assert grade_answer(mcq(), "Paris").is_correct
    assert grade_answer(mcq(), "Paris").marks_awarded == 5
    assert not grade_answer(mcq(), "paris").is_correct
    assert not grade_answer(mcq(), "Lyon").is_correct
    assert grade_answer(mcq(), "Marseille").marks_awarded == 0


def test_true_false_uses_option_flags():
    question = SimpleNamespace(
        id=2,
        kind="true-false",
        marks=1,
        correct_answer=None,
        options=[{"text": "True", "is_correct": False}, {"text": "False", "is_correct": True}],
    )
    assert grade_answer(question, "False").is_correct
    assert not grade_answer(question, "True").is_correct


def test_short_answer_ignores_case_and_surrounding_whitespace():
    result = grade_answer(short(), " paris ")
    assert result.is_correct
    assert result.marks_awarded == 2
    assert not grade_answer(short(), "Pariss").is_correct


def test_unusable_answers_score_zero_without_raising():
    for submitted in (None, "", "   ", 42, ["Paris"]):
        assert grade_answer(short(), submitted).marks_awarded == 0
        assert grade_answer(mcq(), submitted).marks_awarded == 0


def test_grading_is_deterministic():
    first = grade_answer(short(), "PARIS")
    second = grade_answer(short(), "PARIS")
    assert first == second


def test_submission_scores_one_right_one_wrong():
    q2 = mcq(id=2)
    graded = grade_submission(
        [mcq(id=1), q2],
        [
            {"question_id": 1, "submitted_answer": "Paris"},
            {"question_id": 2, "submitted_answer": "Lyon"},
        ],
    )
    assert graded.total_marks_obtained == 5
    assert graded.correct_count == 1
    assert graded.percentage_of(10) == 50
    assert graded.total_marks_obtained == sum(a["marks_awarded"] for a in graded.answers)


def test_unknown_question_ids_are_recorded_with_zero_marks():
    graded = grade_submission(
        [mcq(id=1)],
        [
            {"question_id": 1, "submitted_answer": "Paris"},
            {"question_id": 404, "submitted_answer": "Paris"},
        ],
    )
    assert len(graded.answers) == 2
    assert graded.answers[1] == {
        "question_id": 404,
        "submitted_answer": "Paris",
        "is_correct": False,
        "marks_awarded": 0.0,
    }
    assert graded.total_marks_obtained == 5


def test_only_the_first_answer_to_a_question_counts():
    graded = grade_submission(
        [mcq(id=1)],
        [
            {"question_id": 1, "submitted_answer": "Paris"},
            {"question_id": 1, "submitted_answer": "Paris"},
        ],
    )
    assert graded.total_marks_obtained == 5
    assert graded.correct_count == 1


def test_percentage_is_clamped():
    assert percentage_of(15, 10) == 100
    assert percentage_of(-1, 10) == 0
    assert percentage_of(5, 0) == 0
