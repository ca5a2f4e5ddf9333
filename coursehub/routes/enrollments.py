from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from coursehub.dependencies import get_ledger, get_notifier, get_principal, get_progress
from coursehub.email_utils import notify_safely
from coursehub.exceptions import Forbidden
from coursehub.identity import Principal, require_role
from coursehub.models import Role
from coursehub.schemas import (
    CourseAnalyticsResponse,
    EnrollmentResponse,
    EnrollRequest,
    InstructorAnalyticsResponse,
    ProgressResponse,
    PurchaseConfirmRequest,
)
from coursehub.services.enrollments import EnrollmentLedger
from coursehub.services.progress import ProgressAggregator

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


def queue_enrollment_emails(background_tasks: BackgroundTasks, notifier, enrollment):
    """Tell the student and the instructor; runs after the response is sent."""
    student = enrollment.student
    course = enrollment.course
    instructor = course.instructor
    amount = "Free" if course.is_free else f"{course.price:.2f}"

    background_tasks.add_task(notify_safely, notifier, student.email, "enrollment_confirmed", {
        "name": student.name, "course_title": course.title, "amount": amount,
    })
    if instructor is not None:
        background_tasks.add_task(notify_safely, notifier, instructor.email, "new_enrollment", {
            "name": instructor.name, "student_name": student.name,
            "course_title": course.title, "amount": amount,
        })


@router.post("/", response_model=EnrollmentResponse, status_code=201)
def enroll(data: EnrollRequest, principal: Principal = Depends(get_principal),
           ledger: EnrollmentLedger = Depends(get_ledger)):
    return ledger.enroll(principal, data.course_id, data.payment_status, data.payment_intent_id)


@router.post("/purchase-confirm", response_model=EnrollmentResponse)
def confirm_purchase(data: PurchaseConfirmRequest, background_tasks: BackgroundTasks,
                     principal: Principal = Depends(get_principal),
                     ledger: EnrollmentLedger = Depends(get_ledger), notifier=Depends(get_notifier)):
    enrollment = ledger.confirm_paid_enrollment(principal, data.transaction_reference)
    queue_enrollment_emails(background_tasks, notifier, enrollment)
    return enrollment


@router.get("/", response_model=List[EnrollmentResponse])
def list_enrollments(student: Optional[int] = None, course: Optional[int] = None,
                     principal: Principal = Depends(get_principal),
                     ledger: EnrollmentLedger = Depends(get_ledger)):
    if (student is None) == (course is None):
        raise HTTPException(status_code=400, detail="Pass exactly one of 'student' or 'course'")
    if student is not None:
        if student != principal.user_id and not principal.is_staff:
            raise Forbidden("You can only view your own enrollments")
        return ledger.list_for_student(student)
    require_role(principal, Role.INSTRUCTOR, Role.ADMIN)
    return ledger.list_for_course(course)


@router.get("/analytics/course/{course_id}", response_model=CourseAnalyticsResponse)
def course_analytics(course_id: int, principal: Principal = Depends(get_principal),
                     ledger: EnrollmentLedger = Depends(get_ledger)):
    return ledger.course_analytics(principal, course_id)


@router.get("/analytics/instructor/{instructor_id}", response_model=InstructorAnalyticsResponse)
def instructor_analytics(instructor_id: int, principal: Principal = Depends(get_principal),
                         ledger: EnrollmentLedger = Depends(get_ledger)):
    return ledger.instructor_analytics(principal, instructor_id)


# --- PROGRESS ---
@router.post("/{course_id}/complete/{content_id}", response_model=ProgressResponse)
def mark_complete(course_id: int, content_id: int, background_tasks: BackgroundTasks,
                  principal: Principal = Depends(get_principal),
                  progress: ProgressAggregator = Depends(get_progress),
                  ledger: EnrollmentLedger = Depends(get_ledger), notifier=Depends(get_notifier)):
    update = progress.mark_content_complete(principal, course_id, content_id)
    if update.newly_certified:
        enrollment = ledger.get(principal.user_id, course_id)
        background_tasks.add_task(notify_safely, notifier, enrollment.student.email, "certificate_issued", {
            "name": enrollment.student.name,
            "course_title": enrollment.course.title,
            "certificate_url": update.certificate_url,
        })
    return asdict(update)
