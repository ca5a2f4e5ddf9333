from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from coursehub.dependencies import get_catalog, get_ledger, get_notifier, get_principal, get_progress
from coursehub.email_utils import notify_safely
from coursehub.identity import Principal
from coursehub.models import Category
from coursehub.routes.enrollments import queue_enrollment_emails
from coursehub.schemas import (
    ContentCreate,
    ContentResponse,
    ContentUpdate,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    PurchaseResponse,
)
from coursehub.services.catalog import Catalog
from coursehub.services.enrollments import EnrollmentLedger
from coursehub.services.progress import ProgressAggregator

router = APIRouter(prefix="/courses", tags=["Courses"])
content_router = APIRouter(prefix="/course-content", tags=["Course Content"])

@router.post("/", response_model=CourseResponse, status_code=201)
def create_course(course: CourseCreate, principal: Principal = Depends(get_principal),
                  catalog: Catalog = Depends(get_catalog)):
    return catalog.create_course(principal, course)

@router.get("/", response_model=List[CourseResponse])
def list_courses(category: Optional[Category] = None, catalog: Catalog = Depends(get_catalog)):
    return catalog.list_courses(category)

@router.get("/{course_id}", response_model=CourseResponse)
def get_course(course_id: int, catalog: Catalog = Depends(get_catalog)):
    return catalog.get_course(course_id)

@router.put("/{course_id}", response_model=CourseResponse)
def update_course(course_id: int, course_data: CourseUpdate, principal: Principal = Depends(get_principal),
                  catalog: Catalog = Depends(get_catalog)):
    return catalog.update_course(principal, course_id, course_data)

@router.delete("/{course_id}")
def delete_course(course_id: int, principal: Principal = Depends(get_principal),
                  catalog: Catalog = Depends(get_catalog)):
    catalog.delete_course(principal, course_id)
    return {"message": "Course deleted"}

@router.post("/{course_id}/content", response_model=ContentResponse, status_code=201)
def add_content(course_id: int, content: ContentCreate, principal: Principal = Depends(get_principal),
                catalog: Catalog = Depends(get_catalog)):
    return catalog.add_content(principal, course_id, content)

@router.get("/{course_id}/content", response_model=List[ContentResponse])
def list_content(course_id: int, catalog: Catalog = Depends(get_catalog)):
    return catalog.list_content(course_id)

# --- PURCHASE ---
@router.post("/{course_id}/purchase", response_model=PurchaseResponse)
def purchase_course(course_id: int, background_tasks: BackgroundTasks,
                    principal: Principal = Depends(get_principal),
                    ledger: EnrollmentLedger = Depends(get_ledger), notifier=Depends(get_notifier)):
    enrollment, url = ledger.start_purchase(principal, course_id)
    if enrollment is not None:
        queue_enrollment_emails(background_tasks, notifier, enrollment)
    return {"url": url, "enrollment": enrollment}

# --- SINGLE CONTENT ITEMS ---
@content_router.get("/{content_id}", response_model=ContentResponse)
def get_content(content_id: int, catalog: Catalog = Depends(get_catalog)):
    return catalog.get_content(content_id)

@content_router.put("/{content_id}", response_model=ContentResponse)
def update_content(content_id: int, content: ContentUpdate, principal: Principal = Depends(get_principal),
                   catalog: Catalog = Depends(get_catalog)):
    return catalog.update_content(principal, content_id, content)

@content_router.delete("/{content_id}")
def delete_content(content_id: int, background_tasks: BackgroundTasks,
                   principal: Principal = Depends(get_principal),
                   catalog: Catalog = Depends(get_catalog),
                   progress: ProgressAggregator = Depends(get_progress), notifier=Depends(get_notifier)):
    course_id = catalog.delete_content(principal, content_id)
    # Fewer items can push remaining enrollments to 100%
    for enrollment in progress.recompute_course(course_id):
        background_tasks.add_task(notify_safely, notifier, enrollment.student.email, "certificate_issued", {
            "name": enrollment.student.name,
            "course_title": enrollment.course.title,
            "certificate_url": enrollment.certificate_url,
        })
    return {"message": "Content deleted"}
