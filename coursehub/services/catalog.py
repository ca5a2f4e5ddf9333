import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from coursehub.exceptions import BadRequest, Conflict, Forbidden, NotFound
from coursehub.identity import Principal, require_role
from coursehub.models import (
    CONTENT_CLASSES,
    AssignmentSubmission,
    ContentType,
    Course,
    CourseContent,
    Enrollment,
    EnrollmentCompletion,
    QuizSubmission,
    Role,
)
from coursehub.schemas import CONTENT_SCHEMAS

logger = logging.getLogger(__name__)


def _check_quiz_questions(questions):
    texts = [q["question"] for q in questions]
    if len(texts) != len(set(texts)):
        raise BadRequest("Quiz question text must be unique within a quiz")


class Catalog:
    """Courses and their content. The enrollment core only reads from here."""

    def __init__(self, db: Session):
        self.db = db

    def get_course(self, course_id: int) -> Course:
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFound("Course not found")
        return course

    def get_content(self, content_id: int, content_type: Optional[ContentType] = None) -> CourseContent:
        query = self.db.query(CourseContent).filter(CourseContent.id == content_id)
        if content_type is not None:
            query = query.filter(CourseContent.type == content_type.value)
        content = query.first()
        if not content:
            label = content_type.value.capitalize() if content_type else "Content"
            raise NotFound(f"{label} not found")
        return content

    def count_content(self, course_id: int) -> int:
        return self.db.query(CourseContent).filter(CourseContent.course_id == course_id).count()

    def list_courses(self, category=None) -> List[Course]:
        query = self.db.query(Course)
        if category:
            query = query.filter(Course.category == category.value)
        return query.order_by(Course.created_at.desc(), Course.id.desc()).all()

    def list_content(self, course_id: int) -> List[CourseContent]:
        self.get_course(course_id)
        return (
            self.db.query(CourseContent)
            .filter(CourseContent.course_id == course_id)
            .order_by(CourseContent.id)
            .all()
        )

    def _owned_course(self, principal: Principal, course_id: int) -> Course:
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        course = self.get_course(course_id)
        if principal.role == Role.INSTRUCTOR and course.instructor_id != principal.user_id:
            logger.warning("Instructor %s does not own course %s", principal.user_id, course.id)
            raise Forbidden("Only the course instructor can change this course")
        return course

    def create_course(self, principal: Principal, data) -> Course:
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        course = Course(
            title=data.title,
            description=data.description,
            category=data.category.value,
            level=data.level.value,
            price=data.price,
            instructor_id=principal.user_id,
        )
        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)
        logger.info("Course %s created by user %s", course.id, principal.user_id)
        return course

    def update_course(self, principal: Principal, course_id: int, data) -> Course:
        course = self._owned_course(principal, course_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(course, field, value.value if field in ("category", "level") else value)
        self.db.commit()
        self.db.refresh(course)
        logger.info("Course %s updated by user %s", course.id, principal.user_id)
        return course

    def delete_course(self, principal: Principal, course_id: int) -> None:
        course = self._owned_course(principal, course_id)
        if self.db.query(Enrollment).filter(Enrollment.course_id == course.id).count():
            raise Conflict("Course has enrollments and cannot be deleted")

        self._delete_content_records([c.id for c in course.contents])
        self.db.delete(course)
        self.db.commit()
        logger.info("Course %s deleted by user %s", course_id, principal.user_id)

    def add_content(self, principal: Principal, course_id: int, data) -> CourseContent:
        course = self._owned_course(principal, course_id)

        payload = data.model_dump(exclude={"type"})
        if data.type == ContentType.QUIZ.value:
            _check_quiz_questions(payload["questions"])

        model = CONTENT_CLASSES[ContentType(data.type)]
        content = model(course_id=course.id, created_by=principal.user_id, **payload)
        self.db.add(content)
        self.db.commit()
        self.db.refresh(content)
        logger.info("Added %s content %s to course %s", data.type, content.id, course.id)
        return content

    def update_content(self, principal: Principal, content_id: int, data) -> CourseContent:
        content = self.get_content(content_id)
        self._owned_course(principal, content.course_id)

        changes = data.model_dump(exclude_unset=True)
        # A variant only carries its own payload fields; the type never changes
        allowed = set(CONTENT_SCHEMAS[content.type].model_fields) - {"type"}
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise BadRequest(f"Fields not valid for {content.type} content: {', '.join(unknown)}")
        if "title" in changes and not changes["title"]:
            raise BadRequest("Title is required")
        if changes.get("questions") is not None:
            _check_quiz_questions(changes["questions"])

        for field, value in changes.items():
            setattr(content, field, value)
        self.db.commit()
        self.db.refresh(content)
        logger.info("Content %s updated by user %s", content.id, principal.user_id)
        return content

    def delete_content(self, principal: Principal, content_id: int) -> int:
        """Remove a content item with its completions and submissions; returns its course id."""
        content = self.get_content(content_id)
        course = self._owned_course(principal, content.course_id)

        self._delete_content_records([content.id])
        self.db.delete(content)
        self.db.commit()
        logger.info("Content %s removed from course %s by user %s", content_id, course.id, principal.user_id)
        return course.id

    def _delete_content_records(self, content_ids: List[int]) -> None:
        if not content_ids:
            return
        self.db.query(EnrollmentCompletion).filter(
            EnrollmentCompletion.content_id.in_(content_ids)
        ).delete(synchronize_session=False)
        self.db.query(QuizSubmission).filter(
            QuizSubmission.quiz_content_id.in_(content_ids)
        ).delete(synchronize_session=False)
        self.db.query(AssignmentSubmission).filter(
            AssignmentSubmission.assignment_content_id.in_(content_ids)
        ).delete(synchronize_session=False)
