"""
Roster page routes - HTML views and form posts.

Provides endpoints for:
- Listing all students and the submitted ones
- Bulk delete / submit / unsubmit of the checked students
- Adding a student or editing an existing one
"""

import time
from typing import List
from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from roster.database import get_db
from roster.errors import StudentConflictError
from roster.rendering import (
    PageRenderer, get_renderer, StudentPage, StudentView, StudentForm, ActiveTab, Action
)
from roster.services.batch_processor import BatchOperation, process_students, parse_stuid
from roster.services.student_store import (
    StudentRecord, PLACEHOLDER_STUID, list_students, list_submitted_students,
    get_student_or_placeholder, create_student, rename_student
)
from roster.services.time_since import calculate_time_since
from roster.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")

# urls
HOME_URL = "/stulist/"
SUBMITTED_URL = "/submitted/"

INVALID_STUID = "Student ids are 1-64 letters, digits, '_', '-' or '.'"
MISSING_NAME = "Please enter the student's name"
UNKNOWN_STUDENT = "That student is no longer on the roster"


def to_view(student: StudentRecord) -> StudentView:
    return StudentView(
        stuid=student.stuid,
        name=student.name,
        submission_status=student.submission_status,
        submitted_ago=calculate_time_since(str(student.submission_time)),
    )


def build_student_page(students: List[StudentRecord], submitted: bool) -> StudentPage:
    """Assemble the list page for all students, or only the submitted ones."""
    actions = []
    if submitted:
        actions.append(Action(link="/unsubmit/", icon="fa fa-star-o", label="Remove from submitted list"))
    else:
        actions.append(Action(link="/submit/", icon="fa fa-star", label="Mark as submitted"))
    actions.append(Action(link="/delete/", icon="fa fa-trash", label="Delete student"))

    return StudentPage(
        title="{} | Students".format("Submitted" if submitted else "All"),
        active_tab=ActiveTab(all_students=not submitted, submitted=submitted),
        actions=actions,
        students=[to_view(s) for s in students],
    )


@router.get("/")
def home():
    return RedirectResponse(HOME_URL, status_code=status.HTTP_302_FOUND)


@router.get("/stulist/")
def all_students(request: Request, db: Session = Depends(get_db),
                 renderer: PageRenderer = Depends(get_renderer)):
    """Every student on the roster, submitted or not."""
    start_time = time.time()
    page = build_student_page(list_students(db), submitted=False)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Listed {} students".format(len(page.students)),
                     extra_data={"duration_ms": round(duration_ms, 2)})
    return renderer.student_list(request, page)


@router.get("/submitted/")
def submitted_students(request: Request, db: Session = Depends(get_db),
                       renderer: PageRenderer = Depends(get_renderer)):
    """Students whose assignment has been marked submitted."""
    page = build_student_page(list_submitted_students(db), submitted=True)
    log_with_context(logger, "INFO", "Listed {} submitted students".format(len(page.students)))
    return renderer.student_list(request, page)


# ── Bulk actions ─────────────────────────────────────────────

def _process(db: Session, students: List[str], operation: BatchOperation,
             success_target: str) -> RedirectResponse:
    process_students(db, students, operation)
    return RedirectResponse(success_target, status_code=status.HTTP_302_FOUND)


@router.post("/delete/")
def delete_students(student: List[str] = Form([]), db: Session = Depends(get_db)):
    """Delete the checked students, then return to the full roster."""
    return _process(db, student, BatchOperation.DELETE, HOME_URL)


@router.post("/submit/")
def submit_students(student: List[str] = Form([]), db: Session = Depends(get_db)):
    """Mark the checked students as submitted."""
    return _process(db, student, BatchOperation.SUBMIT, SUBMITTED_URL)


@router.post("/unsubmit/")
def unsubmit_students(student: List[str] = Form([]), db: Session = Depends(get_db)):
    """Take the checked students off the submitted list."""
    return _process(db, student, BatchOperation.UNSUBMIT, SUBMITTED_URL)


# ── Add / edit ───────────────────────────────────────────────

@router.get("/input/")
def student_form(request: Request, stuid: str = "", db: Session = Depends(get_db),
                 renderer: PageRenderer = Depends(get_renderer)):
    """
    Show the student form.

    With a stuid that is on the roster the form edits that student;
    otherwise it adds a new one, pre-filled with the given stuid.
    """
    form = StudentForm(stuid=stuid)
    if stuid:
        student = get_student_or_placeholder(db, stuid)
        if student.stuid != PLACEHOLDER_STUID:
            form = StudentForm(original_stuid=student.stuid, stuid=student.stuid, name=student.name)
    return renderer.student_form(request, form)


@router.post("/input/")
def save_student(request: Request,
                 original_stuid: str = Form(""),
                 stuid: str = Form(""),
                 name: str = Form(""),
                 db: Session = Depends(get_db),
                 renderer: PageRenderer = Depends(get_renderer)):
    """Create a student, or rename the one posted as original_stuid."""
    form = StudentForm(original_stuid=original_stuid.strip(), stuid=stuid, name=name)

    parsed = parse_stuid(stuid)
    if parsed is None:
        form.form_error = INVALID_STUID
        return renderer.student_form(request, form, status_code=status.HTTP_400_BAD_REQUEST)
    if not name.strip():
        form.form_error = MISSING_NAME
        return renderer.student_form(request, form, status_code=status.HTTP_400_BAD_REQUEST)

    if form.is_new:
        row_id = create_student(db, parsed, name.strip())
        log_with_context(logger, "INFO", "Student saved from form",
                         context={"stuid": parsed, "row_id": row_id})
        return RedirectResponse(HOME_URL, status_code=status.HTTP_302_FOUND)

    if get_student_or_placeholder(db, form.original_stuid).stuid == PLACEHOLDER_STUID:
        form.form_error = UNKNOWN_STUDENT
        return renderer.student_form(request, form, status_code=status.HTTP_404_NOT_FOUND)

    try:
        rename_student(db, form.original_stuid, parsed, name.strip())
    except StudentConflictError as e:
        form.form_error = str(e)
        return renderer.student_form(request, form, status_code=status.HTTP_409_CONFLICT)

    return RedirectResponse(HOME_URL, status_code=status.HTTP_302_FOUND)


@router.get("/browser")
def unsupported_browser(request: Request, renderer: PageRenderer = Depends(get_renderer)):
    return renderer.unsupported_browser(request)
