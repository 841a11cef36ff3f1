"""
Asynchronous form-post endpoints answering with a small JSON acknowledgment.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.database import get_db
from roster.errors import StoreError
from roster.services.batch_processor import parse_stuid
from roster.services.student_store import (
    PLACEHOLDER_STUID, get_student_or_placeholder, delete_student
)
from roster.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")

# Errors
BAD_POST = "Sorry, we cannot respond to that request. Please try again."
MISSING_ID = "Missing student id"
INVALID_ID = "Invalid student id"
NO_SUCH_STUDENT = "No such student"


class AjaxAck(BaseModel):
    """Reply for ajax calls; error is omitted from the JSON unless set."""
    message: str = ""
    error: Optional[str] = None


def remove_single_student(db: Session, stuid: str) -> bool:
    """Delete the student if it is on the roster; False when it is not."""
    student = get_student_or_placeholder(db, stuid)
    if student.stuid == PLACEHOLDER_STUID or student.stuid != stuid:
        return False
    delete_student(db, stuid)
    return True


async def posted_stuid(request: Request) -> Optional[str]:
    """
    The raw stuid form field: None when the field was not posted at all,
    the string as sent (possibly empty) otherwise.
    """
    form = await request.form()
    if "stuid" not in form:
        return None
    return str(form["stuid"])


@router.post("/remove/", response_model=AjaxAck, response_model_exclude_none=True)
def remove_student(stuid: Optional[str] = Depends(posted_stuid), db: Session = Depends(get_db)):
    """Remove one student, identified by the stuid form field."""
    ack = AjaxAck()

    if stuid is None:
        ack.error = BAD_POST
        return ack
    if not stuid.strip():
        ack.error = MISSING_ID
        return ack

    parsed = parse_stuid(stuid)
    if parsed is None:
        ack.error = INVALID_ID
        return ack

    try:
        if remove_single_student(db, parsed):
            ack.message = "Ok"
        else:
            ack.error = NO_SUCH_STUDENT
    except (SQLAlchemyError, StoreError) as e:
        log_with_context(logger, "ERROR", "Failed to remove student {}: {}".format(parsed, str(e)),
                         context={"stuid": parsed}, exc_info=True)
        ack.error = str(e)

    return ack
