import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from coursehub.config import Settings
from coursehub.database import upsert
from coursehub.exceptions import BadRequest, Forbidden, NotFound
from coursehub.identity import Principal, require_role
from coursehub.models import AssignmentSubmission, ContentType, Role, utcnow
from coursehub.services.catalog import Catalog

logger = logging.getLogger(__name__)

GRADE_FIELDS = ("grade", "feedback", "graded_by", "graded_at")


class AssignmentStore:
    """
    A student's current deliverable per assignment, plus the instructor's grade.

    Students write file/comments, instructors write the grade fields; the two
    paths never overwrite each other unless ``resubmission_clears_grade``
    is set.
    """

    def __init__(self, db: Session, catalog: Catalog, file_store, settings: Settings):
        self.db = db
        self.catalog = catalog
        self.file_store = file_store
        self.clear_grade_on_resubmit = settings.resubmission_clears_grade

    def _find(self, student_id: int, assignment_content_id: int) -> Optional[AssignmentSubmission]:
        return (
            self.db.query(AssignmentSubmission)
            .filter_by(student_id=student_id, assignment_content_id=assignment_content_id)
            .first()
        )

    def submit_assignment(self, principal: Principal, assignment_content_id: int,
                          filename: Optional[str], data: Optional[bytes],
                          comments: Optional[str] = None) -> AssignmentSubmission:
        require_role(principal, Role.STUDENT)
        assignment = self.catalog.get_content(assignment_content_id, ContentType.ASSIGNMENT)
        key = {"student_id": principal.user_id, "assignment_content_id": assignment.id}
        now = utcnow()

        changes = {"comments": comments, "submitted_at": now}
        if self.clear_grade_on_resubmit:
            changes.update({field: None for field in GRADE_FIELDS})

        if not data:
            # Without a new file only an existing submission can be touched
            updated = (
                self.db.query(AssignmentSubmission)
                .filter_by(**key)
                .update(changes, synchronize_session=False)
            )
            if not updated:
                raise BadRequest("File is required")
            self.db.commit()
            return self._find(**key)

        # Store the file before recording anything
        file_url = self.file_store.put(filename or "submission", data)
        changes["file_url"] = file_url

        submission = upsert(
            self.db, AssignmentSubmission,
            key=key,
            values={"file_url": file_url, "comments": comments, "submitted_at": now},
            update=changes,
        )
        self.db.commit()
        self.db.refresh(submission)
        logger.info("Student %s submitted assignment %s", principal.user_id, assignment.id)
        return submission

    def grade_submission(self, principal: Principal, submission_id: int, grade: float,
                         feedback: Optional[str] = None) -> AssignmentSubmission:
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        submission = self.db.get(AssignmentSubmission, submission_id)
        if not submission:
            raise NotFound("Submission not found")

        if principal.role == Role.INSTRUCTOR:
            assignment = self.catalog.get_content(submission.assignment_content_id)
            if assignment.course.instructor_id != principal.user_id:
                raise Forbidden("Only the course instructor can grade this submission")

        submission.grade = grade
        submission.feedback = feedback
        submission.graded_by = principal.user_id
        submission.graded_at = utcnow()
        self.db.commit()
        self.db.refresh(submission)
        logger.info("Submission %s graded %s by user %s", submission.id, grade, principal.user_id)
        return submission

    def get_submission(self, student_id: int, assignment_content_id: int) -> AssignmentSubmission:
        submission = self._find(student_id, assignment_content_id)
        if not submission:
            raise NotFound("No submission found")
        return submission

    def list_for_assignment(self, principal: Principal, assignment_content_id: int) -> List[AssignmentSubmission]:
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        assignment = self.catalog.get_content(assignment_content_id, ContentType.ASSIGNMENT)
        return (
            self.db.query(AssignmentSubmission)
            .filter_by(assignment_content_id=assignment.id)
            .order_by(AssignmentSubmission.submitted_at, AssignmentSubmission.id)
            .all()
        )
