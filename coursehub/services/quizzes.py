import logging
from collections import Counter
from typing import Iterable, List, Tuple

from sqlalchemy.orm import Session

from coursehub.database import upsert
from coursehub.exceptions import NotFound
from coursehub.identity import Principal, require_role
from coursehub.models import ContentType, QuizSubmission, Role, utcnow
from coursehub.services.catalog import Catalog

logger = logging.getLogger(__name__)


def grade_answers(questions: List[dict], answers: Iterable) -> Tuple[int, List[dict]]:
    """
    Grade submitted answers against a quiz's questions.

    Questions are walked in quiz order and matched to answers by their exact
    text; an unanswered question is graded with ``selected == ""``. Returns
    ``(score, graded_answers)``.
    """
    submitted = {}
    for answer in answers:
        submitted.setdefault(answer.question, answer.selected or "")

    graded = []
    for q in questions:
        selected = submitted.get(q["question"], "")
        graded.append({
            "question": q["question"],
            "selected": selected,
            "correct": q["answer"],
            "is_correct": selected == q["answer"],
        })
    score = sum(1 for g in graded if g["is_correct"])
    return score, graded


class QuizStore:
    def __init__(self, db: Session, catalog: Catalog):
        self.db = db
        self.catalog = catalog

    def submit_quiz(self, principal: Principal, quiz_content_id: int, answers) -> QuizSubmission:
        require_role(principal, Role.STUDENT)
        quiz = self.catalog.get_content(quiz_content_id, ContentType.QUIZ)

        score, graded = grade_answers(quiz.questions or [], answers)
        now = utcnow()

        # Retake: the latest attempt replaces the previous one
        submission = upsert(
            self.db, QuizSubmission,
            key={"student_id": principal.user_id, "quiz_content_id": quiz.id},
            values={"course_id": quiz.course_id, "answers": graded, "score": score, "submitted_at": now},
            update={"course_id": quiz.course_id, "answers": graded, "score": score, "submitted_at": now},
        )
        self.db.commit()
        self.db.refresh(submission)
        logger.info("Student %s scored %s/%s on quiz %s", principal.user_id, score, len(graded), quiz.id)
        return submission

    def get_submission(self, student_id: int, quiz_content_id: int) -> QuizSubmission:
        submission = (
            self.db.query(QuizSubmission)
            .filter_by(student_id=student_id, quiz_content_id=quiz_content_id)
            .first()
        )
        if not submission:
            raise NotFound("No submission found")
        return submission

    def quiz_analytics(self, principal: Principal, quiz_content_id: int) -> dict:
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        quiz = self.catalog.get_content(quiz_content_id, ContentType.QUIZ)
        submissions = (
            self.db.query(QuizSubmission)
            .filter_by(quiz_content_id=quiz.id)
            .order_by(QuizSubmission.submitted_at, QuizSubmission.id)
            .all()
        )

        scores = [s.score for s in submissions]
        question_stats = []
        for q in quiz.questions or []:
            correct = incorrect = 0
            wrong = Counter()
            for sub in submissions:
                ans = next((a for a in sub.answers if a["question"] == q["question"]), None)
                if ans is None:
                    continue
                if ans["is_correct"]:
                    correct += 1
                else:
                    incorrect += 1
                    if ans["selected"]:
                        wrong[ans["selected"]] += 1
            most_common = wrong.most_common(1)
            question_stats.append({
                "question": q["question"],
                "correct": correct,
                "incorrect": incorrect,
                "most_common_wrong": most_common[0][0] if most_common else None,
            })

        return {
            "total_submissions": len(submissions),
            "average_score": sum(scores) / len(scores) if scores else 0.0,
            "submissions": [
                {
                    "student_id": s.student_id,
                    "student_name": s.student.name,
                    "student_email": s.student.email,
                    "score": s.score,
                    "submitted_at": s.submitted_at,
                }
                for s in submissions
            ],
            "question_stats": question_stats,
        }
