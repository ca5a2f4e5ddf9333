import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from coursehub.database import Base


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    STUDENT = "Student"
    INSTRUCTOR = "Instructor"
    ADMIN = "Admin"


class Category(str, enum.Enum):
    PROGRAMMING = "Programming"
    DESIGN = "Design"
    BUSINESS = "Business"
    LANGUAGE = "Language"
    OTHER = "Other"


class Level(str, enum.Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class PaymentStatus(str, enum.Enum):
    FREE = "free"
    PENDING = "pending"
    PAID = "paid"


class ContentType(str, enum.Enum):
    SLIDE = "slide"
    VIDEO = "video"
    DOCUMENT = "document"
    LIVE = "live"
    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    NOTICE = "notice"
    POLL = "poll"
    SURVEY = "survey"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    courses = relationship("Course", back_populates="instructor")
    enrollments = relationship("Enrollment", back_populates="student")


class Course(Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, default="")
    category = Column(String, nullable=False)
    level = Column(String, nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    instructor = relationship("User", back_populates="courses")
    contents = relationship("CourseContent", back_populates="course", cascade="all, delete-orphan")

    @property
    def is_free(self) -> bool:
        return self.price == 0


class CourseContent(Base):
    """
    One unit of course material.

    Every content type lives in this table; ``type`` selects the mapped
    subclass and only that subclass's payload columns are meaningful.
    """

    __tablename__ = "course_contents"
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    # Payload columns, shared by the variants below
    content_url = Column(String, nullable=True)
    external_link = Column(String, nullable=True)
    live_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    assignment_file = Column(String, nullable=True)
    notice_text = Column(Text, nullable=True)
    questions = Column(JSON, nullable=True)
    poll_options = Column(JSON, nullable=True)
    survey_questions = Column(JSON, nullable=True)

    course = relationship("Course", back_populates="contents")

    __mapper_args__ = {"polymorphic_on": type}


class Slide(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.SLIDE.value}


class Video(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.VIDEO.value}


class Document(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.DOCUMENT.value}


class Live(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.LIVE.value}


class Assignment(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.ASSIGNMENT.value}


class Quiz(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.QUIZ.value}


class Notice(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.NOTICE.value}


class Poll(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.POLL.value}


class Survey(CourseContent):
    __mapper_args__ = {"polymorphic_identity": ContentType.SURVEY.value}


CONTENT_CLASSES = {
    ContentType.SLIDE: Slide,
    ContentType.VIDEO: Video,
    ContentType.DOCUMENT: Document,
    ContentType.LIVE: Live,
    ContentType.ASSIGNMENT: Assignment,
    ContentType.QUIZ: Quiz,
    ContentType.NOTICE: Notice,
    ContentType.POLL: Poll,
    ContentType.SURVEY: Survey,
}


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_enrollment_student_course"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    enrolled_at = Column(DateTime, default=utcnow, nullable=False)
    payment_status = Column(String, default=PaymentStatus.FREE.value, nullable=False)
    payment_intent_id = Column(String, nullable=True)
    progress = Column(Integer, default=0, nullable=False)
    certificate_issued = Column(Boolean, default=False, nullable=False)
    certificate_url = Column(String, nullable=True)

    student = relationship("User", back_populates="enrollments")
    course = relationship("Course")
    completions = relationship("EnrollmentCompletion", back_populates="enrollment", cascade="all, delete-orphan")

    @property
    def completed_content(self):
        return sorted(c.content_id for c in self.completions)


class EnrollmentCompletion(Base):
    __tablename__ = "enrollment_completions"
    __table_args__ = (UniqueConstraint("enrollment_id", "content_id", name="uq_completion_enrollment_content"),)

    id = Column(Integer, primary_key=True)
    enrollment_id = Column(Integer, ForeignKey("enrollments.id"), nullable=False, index=True)
    content_id = Column(Integer, ForeignKey("course_contents.id"), nullable=False)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    enrollment = relationship("Enrollment", back_populates="completions")


class QuizSubmission(Base):
    __tablename__ = "quiz_submissions"
    __table_args__ = (UniqueConstraint("student_id", "quiz_content_id", name="uq_quiz_submission_student_quiz"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    quiz_content_id = Column(Integer, ForeignKey("course_contents.id"), nullable=False, index=True)
    answers = Column(JSON, nullable=False, default=list)
    score = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    student = relationship("User")


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"
    __table_args__ = (
        UniqueConstraint("student_id", "assignment_content_id", name="uq_assignment_submission_student_assignment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_content_id = Column(Integer, ForeignKey("course_contents.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    file_url = Column(String, nullable=False)
    comments = Column(Text, nullable=True)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    grade = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    graded_at = Column(DateTime, nullable=True)

    student = relationship("User", foreign_keys=[student_id])
