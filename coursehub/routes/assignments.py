from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from coursehub.dependencies import get_assignment_store, get_principal
from coursehub.identity import Principal
from coursehub.schemas import AssignmentSubmissionResponse, GradeRequest, SubmissionWithStudent
from coursehub.services.assignments import AssignmentStore

router = APIRouter(prefix="/assignment-submissions", tags=["Assignments"])

# Student submits (or resubmits) an assignment
@router.post("/", response_model=AssignmentSubmissionResponse, status_code=201)
async def submit_assignment(assignment_content_id: int = Form(...), comments: Optional[str] = Form(None),
                            file: Optional[UploadFile] = File(None),
                            principal: Principal = Depends(get_principal),
                            assignments: AssignmentStore = Depends(get_assignment_store)):
    data = await file.read() if file is not None else None
    filename = file.filename if file is not None else None
    return assignments.submit_assignment(principal, assignment_content_id, filename, data, comments)

# Instructor gets all submissions for an assignment
@router.get("/all/{assignment_content_id}", response_model=List[SubmissionWithStudent])
def list_submissions(assignment_content_id: int, principal: Principal = Depends(get_principal),
                     assignments: AssignmentStore = Depends(get_assignment_store)):
    submissions = assignments.list_for_assignment(principal, assignment_content_id)
    return [
        SubmissionWithStudent(
            **AssignmentSubmissionResponse.model_validate(s).model_dump(),
            student_name=s.student.name,
            student_email=s.student.email,
        )
        for s in submissions
    ]

# Student gets their own submission for an assignment
@router.get("/{assignment_content_id}", response_model=AssignmentSubmissionResponse)
def get_own_submission(assignment_content_id: int, principal: Principal = Depends(get_principal),
                       assignments: AssignmentStore = Depends(get_assignment_store)):
    return assignments.get_submission(principal.user_id, assignment_content_id)

# Instructor grades a submission
@router.put("/{submission_id}/grade", response_model=AssignmentSubmissionResponse)
def grade_submission(submission_id: int, data: GradeRequest, principal: Principal = Depends(get_principal),
                     assignments: AssignmentStore = Depends(get_assignment_store)):
    return assignments.grade_submission(principal, submission_id, data.grade, data.feedback)
