import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from coursehub.config import Settings
from coursehub.database import insert_ignore
from coursehub.exceptions import NotFound
from coursehub.identity import Principal, require_role
from coursehub.models import CourseContent, Enrollment, EnrollmentCompletion, Role, utcnow
from coursehub.services.catalog import Catalog

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    progress: int
    certificate_issued: bool
    certificate_url: Optional[str]
    newly_certified: bool = False


def completion_percentage(completed: int, total: int) -> int:
    """Whole percent, halves rounded up. An empty course is 0% complete."""
    if total <= 0:
        return 0
    return min(100, (200 * completed + total) // (2 * total))


class ProgressAggregator:
    """
    Turns "content completed" events into a progress percentage and a
    one-time certificate.

    Progress is always recomputed from the completion set against the live
    content count of the course, so it can move backwards when content is
    added. The certificate never does: once issued it stays issued.
    """

    def __init__(self, db: Session, catalog: Catalog, settings: Settings):
        self.db = db
        self.catalog = catalog
        self.certificate_prefix = settings.certificate_url_prefix.rstrip("/")

    def certificate_url(self, enrollment: Enrollment) -> str:
        return f"{self.certificate_prefix}/{enrollment.id}.pdf"

    def _completed_count(self, enrollment: Enrollment) -> int:
        # Completions of content that has since been removed do not count
        return (
            self.db.query(func.count(EnrollmentCompletion.id))
            .join(CourseContent, CourseContent.id == EnrollmentCompletion.content_id)
            .filter(
                EnrollmentCompletion.enrollment_id == enrollment.id,
                CourseContent.course_id == enrollment.course_id,
            )
            .scalar()
        )

    def _certify(self, enrollment: Enrollment) -> bool:
        if enrollment.progress == 100 and not enrollment.certificate_issued:
            enrollment.certificate_issued = True
            enrollment.certificate_url = self.certificate_url(enrollment)
            return True
        return False

    def recompute_course(self, course_id: int) -> List[Enrollment]:
        """
        Refresh stored progress for every enrollment of a course after its
        content changed. Returns the enrollments certified by this pass.
        """
        total = self.catalog.count_content(course_id)
        enrollments = (
            self.db.query(Enrollment)
            .filter(Enrollment.course_id == course_id)
            .order_by(Enrollment.id)
            .with_for_update()
            .all()
        )
        certified = []
        for enrollment in enrollments:
            enrollment.progress = completion_percentage(self._completed_count(enrollment), total)
            if self._certify(enrollment):
                certified.append(enrollment)
        self.db.commit()

        for enrollment in certified:
            logger.info("Certificate issued for enrollment %s", enrollment.id)
        return certified

    def mark_content_complete(self, principal: Principal, course_id: int, content_id: int) -> ProgressUpdate:
        require_role(principal, Role.STUDENT)
        content = self.catalog.get_content(content_id)
        if content.course_id != course_id:
            raise NotFound("Content not found in this course")

        # Row lock serialises concurrent completions for the same enrollment
        enrollment = (
            self.db.query(Enrollment)
            .filter_by(student_id=principal.user_id, course_id=course_id)
            .with_for_update()
            .first()
        )
        if not enrollment:
            raise NotFound("Enrollment not found")

        insert_ignore(self.db, EnrollmentCompletion, {
            "enrollment_id": enrollment.id,
            "content_id": content.id,
            "completed_at": utcnow(),
        })

        enrollment.progress = completion_percentage(
            self._completed_count(enrollment), self.catalog.count_content(course_id)
        )

        newly_certified = self._certify(enrollment)

        self.db.commit()
        self.db.refresh(enrollment)

        if newly_certified:
            logger.info("Certificate issued for enrollment %s", enrollment.id)
        return ProgressUpdate(
            progress=enrollment.progress,
            certificate_issued=enrollment.certificate_issued,
            certificate_url=enrollment.certificate_url,
            newly_certified=newly_certified,
        )
