from typing import Optional

from fastapi import APIRouter, Depends

from coursehub.dependencies import get_principal, get_quiz_store
from coursehub.exceptions import Forbidden
from coursehub.identity import Principal
from coursehub.schemas import QuizAnalyticsResponse, QuizResultResponse, QuizSubmissionResponse, QuizSubmitRequest
from coursehub.services.quizzes import QuizStore

router = APIRouter(prefix="/quiz-submissions", tags=["Quizzes"])

@router.post("/", response_model=QuizResultResponse, status_code=201)
def submit_quiz(data: QuizSubmitRequest, principal: Principal = Depends(get_principal),
                quizzes: QuizStore = Depends(get_quiz_store)):
    submission = quizzes.submit_quiz(principal, data.quiz_content_id, data.answers)
    return {"score": submission.score, "answers": submission.answers}

@router.get("/analytics/{quiz_content_id}", response_model=QuizAnalyticsResponse)
def quiz_analytics(quiz_content_id: int, principal: Principal = Depends(get_principal),
                   quizzes: QuizStore = Depends(get_quiz_store)):
    return quizzes.quiz_analytics(principal, quiz_content_id)

@router.get("/{quiz_content_id}", response_model=QuizSubmissionResponse)
def get_submission(quiz_content_id: int, student: Optional[int] = None,
                   principal: Principal = Depends(get_principal),
                   quizzes: QuizStore = Depends(get_quiz_store)):
    student_id = principal.user_id if student is None else student
    if student_id != principal.user_id and not principal.is_staff:
        raise Forbidden("You can only view your own submissions")
    return quizzes.get_submission(student_id, quiz_content_id)
