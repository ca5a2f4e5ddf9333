from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from coursehub.models import Category, Level, PaymentStatus, Role

# --- User Schemas ---
class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    class Config:
        from_attributes = True

# --- Course Schemas ---
class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = ""
    category: Category
    level: Level
    price: float = Field(0.0, ge=0)

class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    level: Optional[Level] = None
    price: Optional[float] = Field(None, ge=0)

class CourseResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = ""
    category: Category
    level: Level
    price: float
    instructor_id: int
    created_at: datetime
    class Config:
        from_attributes = True

# --- Course Content (one variant per content type) ---
class _ContentBase(BaseModel):
    title: str
    description: Optional[str] = None

class SlideCreate(_ContentBase):
    type: Literal["slide"]
    content_url: str

class VideoCreate(_ContentBase):
    type: Literal["video"]
    content_url: str

class DocumentCreate(_ContentBase):
    type: Literal["document"]
    content_url: Optional[str] = None
    external_link: Optional[str] = None

class LiveCreate(_ContentBase):
    type: Literal["live"]
    live_date: datetime
    content_url: Optional[str] = None

class AssignmentCreate(_ContentBase):
    type: Literal["assignment"]
    due_date: Optional[datetime] = None
    assignment_file: Optional[str] = None

class QuizQuestion(BaseModel):
    question: str
    options: List[str]
    answer: str

class QuizCreate(_ContentBase):
    type: Literal["quiz"]
    due_date: Optional[datetime] = None
    questions: List[QuizQuestion]

class NoticeCreate(_ContentBase):
    type: Literal["notice"]
    notice_text: str

class PollOption(BaseModel):
    option: str
    votes: int = 0

class PollCreate(_ContentBase):
    type: Literal["poll"]
    poll_options: List[PollOption]

class SurveyQuestion(BaseModel):
    question: str
    options: List[str] = []
    answer_required: bool = False

class SurveyCreate(_ContentBase):
    type: Literal["survey"]
    survey_questions: List[SurveyQuestion]

ContentCreate = Annotated[
    Union[
        SlideCreate, VideoCreate, DocumentCreate, LiveCreate, AssignmentCreate,
        QuizCreate, NoticeCreate, PollCreate, SurveyCreate,
    ],
    Field(discriminator="type"),
]

CONTENT_SCHEMAS = {
    "slide": SlideCreate,
    "video": VideoCreate,
    "document": DocumentCreate,
    "live": LiveCreate,
    "assignment": AssignmentCreate,
    "quiz": QuizCreate,
    "notice": NoticeCreate,
    "poll": PollCreate,
    "survey": SurveyCreate,
}

class ContentUpdate(BaseModel):
    """Partial update; only the fields of the item's own variant are accepted."""
    title: Optional[str] = None
    description: Optional[str] = None
    content_url: Optional[str] = None
    external_link: Optional[str] = None
    live_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    assignment_file: Optional[str] = None
    notice_text: Optional[str] = None
    questions: Optional[List[QuizQuestion]] = None
    poll_options: Optional[List[PollOption]] = None
    survey_questions: Optional[List[SurveyQuestion]] = None

class ContentResponse(BaseModel):
    id: int
    course_id: int
    type: str
    title: str
    description: Optional[str] = None
    content_url: Optional[str] = None
    external_link: Optional[str] = None
    live_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    assignment_file: Optional[str] = None
    notice_text: Optional[str] = None
    questions: Optional[List[QuizQuestion]] = None
    poll_options: Optional[List[PollOption]] = None
    survey_questions: Optional[List[SurveyQuestion]] = None
    class Config:
        from_attributes = True

# --- Enrollments ---
class EnrollRequest(BaseModel):
    course_id: int
    payment_status: Optional[PaymentStatus] = None
    payment_intent_id: Optional[str] = None

class PurchaseConfirmRequest(BaseModel):
    transaction_reference: str

class EnrollmentResponse(BaseModel):
    id: int
    student_id: int
    course_id: int
    enrolled_at: datetime
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None
    progress: int
    completed_content: List[int] = []
    certificate_issued: bool
    certificate_url: Optional[str] = None
    class Config:
        from_attributes = True

class PurchaseResponse(BaseModel):
    url: Optional[str] = None
    enrollment: Optional[EnrollmentResponse] = None

class ProgressResponse(BaseModel):
    progress: int
    certificate_issued: bool
    certificate_url: Optional[str] = None

class DailyCount(BaseModel):
    day: date
    count: int

class DailyRevenue(BaseModel):
    day: date
    revenue: float

class EnrolledStudent(BaseModel):
    id: int
    name: str
    email: str
    enrolled_at: datetime
    payment_status: PaymentStatus
    progress: int
    certificate_issued: bool

class RecentEnrollment(BaseModel):
    student_id: int
    student_name: str
    enrolled_at: datetime
    payment_status: PaymentStatus

class CourseSummary(BaseModel):
    course_id: int
    title: str
    price: float
    total: int
    paid: int
    free: int
    pending: int
    earnings: float
    daily_enrollments: List[DailyCount]

class CourseAnalyticsResponse(CourseSummary):
    daily_revenue: List[DailyRevenue]
    students: List[EnrolledStudent]
    completion_rate: float

class InstructorCourseSummary(CourseSummary):
    recent: List[RecentEnrollment]

class InstructorAnalyticsResponse(BaseModel):
    courses: List[InstructorCourseSummary]
    total_earnings: float

# --- Quiz submissions ---
class QuizAnswer(BaseModel):
    question: str
    selected: str = ""

class QuizSubmitRequest(BaseModel):
    quiz_content_id: int
    answers: List[QuizAnswer] = []

class GradedAnswer(BaseModel):
    question: str
    selected: str
    correct: str
    is_correct: bool

class QuizResultResponse(BaseModel):
    score: int
    answers: List[GradedAnswer]

class QuizSubmissionResponse(BaseModel):
    id: int
    student_id: int
    course_id: int
    quiz_content_id: int
    answers: List[GradedAnswer]
    score: int
    submitted_at: datetime
    class Config:
        from_attributes = True

class QuestionStats(BaseModel):
    question: str
    correct: int
    incorrect: int
    most_common_wrong: Optional[str] = None

class QuizSubmissionSummary(BaseModel):
    student_id: int
    student_name: str
    student_email: str
    score: int
    submitted_at: datetime

class QuizAnalyticsResponse(BaseModel):
    total_submissions: int
    average_score: float
    submissions: List[QuizSubmissionSummary]
    question_stats: List[QuestionStats]

# --- Assignment submissions ---
class AssignmentSubmissionResponse(BaseModel):
    id: int
    assignment_content_id: int
    student_id: int
    file_url: str
    comments: Optional[str] = None
    submitted_at: datetime
    grade: Optional[float] = None
    feedback: Optional[str] = None
    graded_by: Optional[int] = None
    graded_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class SubmissionWithStudent(AssignmentSubmissionResponse):
    student_name: str
    student_email: str

class GradeRequest(BaseModel):
    grade: float
    feedback: Optional[str] = None
