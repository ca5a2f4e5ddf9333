import logging
from collections import Counter
from typing import List, Optional, Tuple

from sqlalchemy import case
from sqlalchemy.orm import Session

from coursehub.database import upsert
from coursehub.exceptions import BadRequest, Forbidden
from coursehub.identity import Principal, require_role
from coursehub.models import Course, Enrollment, PaymentStatus, Role, User, utcnow
from coursehub.services.catalog import Catalog

logger = logging.getLogger(__name__)


class EnrollmentLedger:
    """
    Who has access to which course, and at what payment state.

    There is at most one enrollment per (student, course); every write goes
    through a single INSERT ... ON CONFLICT statement against that key.
    """

    def __init__(self, db: Session, catalog: Catalog, payments=None):
        self.db = db
        self.catalog = catalog
        self.payments = payments

    def _upsert(self, student_id: int, course_id: int, status: PaymentStatus,
                payment_intent_id: Optional[str]) -> Enrollment:
        values = {
            "enrolled_at": utcnow(),
            "progress": 0,
            "certificate_issued": False,
            "payment_status": status.value,
            "payment_intent_id": payment_intent_id,
        }
        already_paid = Enrollment.payment_status == PaymentStatus.PAID.value
        if status == PaymentStatus.PAID:
            update = {"payment_status": status.value}
            if payment_intent_id is not None:
                update["payment_intent_id"] = payment_intent_id
        else:
            # A confirmed payment is never rolled back by a re-enroll
            update = {"payment_status": case((already_paid, PaymentStatus.PAID.value), else_=status.value)}
            if payment_intent_id is not None:
                update["payment_intent_id"] = case(
                    (already_paid, Enrollment.payment_intent_id), else_=payment_intent_id
                )

        enrollment = upsert(
            self.db, Enrollment,
            key={"student_id": student_id, "course_id": course_id},
            values=values,
            update=update,
        )
        self.db.commit()
        self.db.refresh(enrollment)
        return enrollment

    def enroll(self, principal: Principal, course_id: int,
               requested_payment_status: Optional[PaymentStatus] = None,
               payment_intent_id: Optional[str] = None) -> Enrollment:
        require_role(principal, Role.STUDENT)
        course = self.catalog.get_course(course_id)

        if course.is_free:
            status = PaymentStatus.FREE
        elif requested_payment_status in (None, PaymentStatus.FREE):
            # Only a zero price makes an enrollment free
            status = PaymentStatus.PENDING
        else:
            status = requested_payment_status

        enrollment = self._upsert(principal.user_id, course.id, status, payment_intent_id)
        logger.info("Student %s enrolled in course %s (%s)", principal.user_id, course.id, enrollment.payment_status)
        return enrollment

    def confirm_paid_enrollment(self, principal: Principal, transaction_reference: str) -> Enrollment:
        require_role(principal, Role.STUDENT)
        # Ask the provider first: nothing is written unless it answers
        result = self.payments.retrieve(transaction_reference)
        if not result.is_paid:
            raise BadRequest("Payment not completed")
        if result.student_id != principal.user_id:
            logger.warning("User %s tried to confirm a payment made by %s", principal.user_id, result.student_id)
            raise Forbidden("This payment belongs to another student")

        course = self.catalog.get_course(result.course_id)
        enrollment = self._upsert(principal.user_id, course.id, PaymentStatus.PAID, result.transaction_id)
        logger.info("Payment %s confirmed for student %s in course %s",
                    result.transaction_id, principal.user_id, course.id)
        return enrollment

    def start_purchase(self, principal: Principal, course_id: int) -> Tuple[Optional[Enrollment], Optional[str]]:
        """
        Free courses are enrolled straight away; paid ones get a checkout URL.
        Returns ``(enrollment, None)`` or ``(None, url)``.
        """
        require_role(principal, Role.STUDENT)
        course = self.catalog.get_course(course_id)
        if course.is_free:
            return self.enroll(principal, course.id), None

        student = self.db.get(User, principal.user_id)
        url = self.payments.create_checkout(course, student)
        logger.info("Checkout started for student %s, course %s", principal.user_id, course.id)
        return None, url

    def get(self, student_id: int, course_id: int) -> Optional[Enrollment]:
        return self.db.query(Enrollment).filter_by(student_id=student_id, course_id=course_id).first()

    def list_for_student(self, student_id: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.student_id == student_id)
            .order_by(Enrollment.enrolled_at, Enrollment.id)
            .all()
        )

    def list_for_course(self, course_id: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.course_id == course_id)
            .order_by(Enrollment.enrolled_at, Enrollment.id)
            .all()
        )

    @staticmethod
    def _summary(course: Course, enrollments: List[Enrollment]) -> dict:
        by_status = Counter(e.payment_status for e in enrollments)
        daily = Counter(e.enrolled_at.date() for e in enrollments)
        return {
            "course_id": course.id,
            "title": course.title,
            "price": course.price,
            "total": len(enrollments),
            "paid": by_status[PaymentStatus.PAID.value],
            "free": by_status[PaymentStatus.FREE.value],
            "pending": by_status[PaymentStatus.PENDING.value],
            "earnings": by_status[PaymentStatus.PAID.value] * course.price,
            "daily_enrollments": [{"day": day, "count": daily[day]} for day in sorted(daily)],
        }

    def course_analytics(self, principal: Principal, course_id: int) -> dict:
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        course = self.catalog.get_course(course_id)
        enrollments = self.list_for_course(course.id)

        revenue = Counter()
        for e in enrollments:
            if e.payment_status == PaymentStatus.PAID.value:
                revenue[e.enrolled_at.date()] += course.price
        completed = sum(1 for e in enrollments if e.progress >= 100 or e.certificate_issued)

        stats = self._summary(course, enrollments)
        stats.update({
            "daily_revenue": [{"day": day, "revenue": revenue[day]} for day in sorted(revenue)],
            "students": [
                {
                    "id": e.student.id,
                    "name": e.student.name,
                    "email": e.student.email,
                    "enrolled_at": e.enrolled_at,
                    "payment_status": e.payment_status,
                    "progress": e.progress,
                    "certificate_issued": e.certificate_issued,
                }
                for e in enrollments
            ],
            "completion_rate": (completed / len(enrollments)) * 100 if enrollments else 0.0,
        })
        return stats

    def instructor_analytics(self, principal: Principal, instructor_id: int, recent: int = 5) -> dict:
        """Per-course enrollment figures for every course an instructor owns."""
        require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
        courses = (
            self.db.query(Course)
            .filter(Course.instructor_id == instructor_id)
            .order_by(Course.id)
            .all()
        )

        analytics = []
        for course in courses:
            enrollments = self.list_for_course(course.id)
            latest = sorted(enrollments, key=lambda e: (e.enrolled_at, e.id), reverse=True)[:recent]
            summary = self._summary(course, enrollments)
            summary["recent"] = [
                {
                    "student_id": e.student_id,
                    "student_name": e.student.name,
                    "enrolled_at": e.enrolled_at,
                    "payment_status": e.payment_status,
                }
                for e in latest
            ]
            analytics.append(summary)

        return {
            "courses": analytics,
            "total_earnings": sum(c["earnings"] for c in analytics),
        }
