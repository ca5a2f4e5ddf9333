import pytest

from coursehub.exceptions import Forbidden, NotFound
from coursehub.models import ContentType, QuizSubmission, Role
from coursehub.schemas import QuizAnswer
from coursehub.services.quizzes import QuizStore, grade_answers

QUESTIONS = [
    {"question": "q1", "options": ["A", "B", "C"], "answer": "A"},
    {"question": "q2", "options": ["A", "B", "C"], "answer": "B"},
]


def answers(*pairs):
    return [QuizAnswer(question=q, selected=s) for q, s in pairs]


@pytest.fixture
def quizzes(db, catalog):
    return QuizStore(db, catalog)


@pytest.fixture
def quiz(make_course, make_content):
    course = make_course()
    return make_content(course, ContentType.QUIZ, questions=QUESTIONS)


def test_grade_answers_in_quiz_order():
    score, graded = grade_answers(QUESTIONS, answers(("q2", "X"), ("q1", "A")))

    assert score == 1
    assert graded == [
        {"question": "q1", "selected": "A", "correct": "A", "is_correct": True},
        {"question": "q2", "selected": "X", "correct": "B", "is_correct": False},
    ]


def test_missing_answer_is_empty_and_wrong():
    score, graded = grade_answers(QUESTIONS, answers(("q1", "A")))

    assert score == 1
    assert graded[1] == {"question": "q2", "selected": "", "correct": "B", "is_correct": False}


def test_grading_is_case_sensitive_and_ignores_unknown_questions():
    score, graded = grade_answers(QUESTIONS, answers(("q1", "a"), ("q3", "A"), ("q2", "B ")))

    assert score == 0
    assert [g["question"] for g in graded] == ["q1", "q2"]


def test_first_answer_for_a_question_wins():
    score, _ = grade_answers(QUESTIONS, answers(("q1", "A"), ("q1", "C")))
    assert score == 1


def test_submit_quiz_persists_graded_answers(quizzes, quiz, student, as_principal):
    submission = quizzes.submit_quiz(as_principal(student), quiz.id, answers(("q1", "A"), ("q2", "X")))

    assert submission.score == 1
    assert submission.course_id == quiz.course_id
    assert [a["is_correct"] for a in submission.answers] == [True, False]


def test_retake_overwrites_previous_submission(quizzes, db, quiz, student, as_principal):
    principal = as_principal(student)
    first = quizzes.submit_quiz(principal, quiz.id, answers(("q1", "C")))
    second = quizzes.submit_quiz(principal, quiz.id, answers(("q1", "A"), ("q2", "B")))

    assert second.id == first.id
    assert db.query(QuizSubmission).count() == 1
    stored = quizzes.get_submission(student.id, quiz.id)
    assert stored.score == 2
    assert [a["selected"] for a in stored.answers] == ["A", "B"]


def test_submit_requires_a_quiz(quizzes, make_course, make_content, student, as_principal):
    video = make_content(make_course(), ContentType.VIDEO, content_url="https://videos.test/1")

    with pytest.raises(NotFound):
        quizzes.submit_quiz(as_principal(student), video.id, [])
    with pytest.raises(NotFound):
        quizzes.submit_quiz(as_principal(student), 9999, [])


def test_get_submission_not_found(quizzes, quiz, student):
    with pytest.raises(NotFound):
        quizzes.get_submission(student.id, quiz.id)


def test_quiz_analytics(quizzes, quiz, make_user, instructor, as_principal):
    s1, s2, s3 = (make_user(Role.STUDENT) for _ in range(3))
    quizzes.submit_quiz(as_principal(s1), quiz.id, answers(("q1", "A"), ("q2", "B")))
    quizzes.submit_quiz(as_principal(s2), quiz.id, answers(("q1", "C"), ("q2", "C")))
    quizzes.submit_quiz(as_principal(s3), quiz.id, answers(("q1", "C")))

    stats = quizzes.quiz_analytics(as_principal(instructor), quiz.id)

    assert stats["total_submissions"] == 3
    assert stats["average_score"] == pytest.approx(2 / 3)
    q1, q2 = stats["question_stats"]
    assert (q1["correct"], q1["incorrect"], q1["most_common_wrong"]) == (1, 2, "C")
    # an unanswered question counts as incorrect but not as a wrong choice
    assert (q2["correct"], q2["incorrect"], q2["most_common_wrong"]) == (1, 2, "C")
    assert {(s["student_id"], s["student_name"], s["score"]) for s in stats["submissions"]} == {
        (s1.id, s1.name, 2), (s2.id, s2.name, 0), (s3.id, s3.name, 0),
    }


def test_quiz_analytics_empty_and_staff_only(quizzes, quiz, instructor, student, as_principal):
    stats = quizzes.quiz_analytics(as_principal(instructor), quiz.id)
    assert stats["total_submissions"] == 0
    assert stats["average_score"] == 0.0
    assert stats["submissions"] == []
    assert all(s["most_common_wrong"] is None for s in stats["question_stats"])

    with pytest.raises(Forbidden):
        quizzes.quiz_analytics(as_principal(student), quiz.id)
