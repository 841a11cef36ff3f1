"""
Student Record Store - data access for the Student roster.

All operations take the request's SQLAlchemy session and commit before
returning, so a read issued right after a mutation sees it.

Identity rules:
1. stuid (the student number) is the business key and unique per row
2. Creating a stuid that already exists returns the existing surrogate key
3. "Not found" is never an error: lookups return BAD_PK or a placeholder

Reads go through a typed mapping step (StudentRecord) so a column holding
the wrong kind of value raises StudentDecodeError instead of leaking a
mistyped value into the pages.
"""

import time
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from roster.errors import StudentConflictError, StudentDecodeError
from roster.logging_config import get_logger, log_with_context
from roster.models.student import Student

logger = get_logger("db")

# Surrogate keys are always >= 1, so a negative value means "no such row"
BAD_PK = -1

# stuid carried by the placeholder returned for missing students
PLACEHOLDER_STUID = "-1"

SELECT_STUDENTS = (
    "SELECT id AS row_id, stuid, name, submission_status, submission_time "
    "FROM Student"
)
ORDER_BY_SUBMISSION_TIME = " ORDER BY submission_time ASC, id ASC"


class StudentRecord(BaseModel):
    """A decoded Student row."""
    model_config = ConfigDict(strict=True, frozen=True)

    row_id: int
    stuid: str
    name: str
    submission_status: bool
    submission_time: int

    @field_validator("submission_status", mode="before")
    @classmethod
    def decode_status(cls, value):
        # SQLite stores the flag as INTEGER 0/1
        if isinstance(value, bool):
            return value
        if type(value) is int and value in (0, 1):
            return bool(value)
        raise ValueError("submission_status must be 0 or 1, got {!r}".format(value))


def _decode_row(row) -> StudentRecord:
    """Map one result row onto StudentRecord or raise StudentDecodeError."""
    values = dict(row._mapping)
    try:
        return StudentRecord.model_validate(values)
    except ValidationError as e:
        log_with_context(logger, "ERROR", "Failed to decode Student row",
                         context={"stuid": values.get("stuid"), "row_id": values.get("row_id")},
                         extra_data={"error": str(e)},
                         exc_info=True)
        raise StudentDecodeError(
            "Student row {} has mistyped columns: {}".format(values.get("row_id"), e)
        ) from e


def _fetch_students(db: Session, where: str = "", params: dict = None) -> List[StudentRecord]:
    sql = SELECT_STUDENTS + where + ORDER_BY_SUBMISSION_TIME
    rows = db.execute(text(sql), params or {}).fetchall()
    return [_decode_row(row) for row in rows]


def _commit(db: Session, action: str, stuid: str):
    """Commit the pending change, rolling back and re-raising on failure."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(logger, "ERROR", "Failed to {} student".format(action),
                         context={"stuid": stuid}, extra_data={"error": str(e)},
                         exc_info=True)
        raise


# ── Lookups ──────────────────────────────────────────────────

def find_student_pk(db: Session, stuid: str) -> int:
    """Return the surrogate key of the student with this stuid, or BAD_PK."""
    row = db.query(Student.row_id).filter(Student.stuid == stuid).first()
    if row is None:
        return BAD_PK
    return row[0]


def get_student_or_placeholder(db: Session, stuid: str) -> StudentRecord:
    """
    Return the student with this stuid.

    When there is none, a placeholder whose stuid is PLACEHOLDER_STUID is
    returned so callers can compare ids instead of handling None.
    """
    students = _fetch_students(db, " WHERE stuid = :stuid", {"stuid": stuid})
    if students:
        return students[0]
    return StudentRecord(
        row_id=BAD_PK,
        stuid=PLACEHOLDER_STUID,
        name="",
        submission_status=False,
        submission_time=0,
    )


def list_students(db: Session) -> List[StudentRecord]:
    """All students, oldest submission_time first."""
    return _fetch_students(db)


def list_submitted_students(db: Session) -> List[StudentRecord]:
    """Students whose work has been marked submitted, oldest first."""
    return _fetch_students(db, " WHERE submission_status = 1")


# ── Mutations ────────────────────────────────────────────────

def create_student(db: Session, stuid: str, name: str,
                   submission_time: Optional[int] = None) -> int:
    """
    Add a student and return its surrogate key.

    If the stuid is already on the roster nothing is inserted and the
    existing surrogate key is returned. The new key is read back from the
    insert itself, never from the table's sequence.
    """
    existing_pk = find_student_pk(db, stuid)
    if existing_pk != BAD_PK:
        log_with_context(logger, "DEBUG", "Student already on roster",
                         context={"stuid": stuid, "row_id": existing_pk})
        return existing_pk

    student = Student(
        stuid=stuid,
        name=name,
        submission_status=False,
        submission_time=int(time.time()) if submission_time is None else submission_time,
    )
    try:
        db.add(student)
        db.flush()
    except IntegrityError:
        # Another writer added the same stuid after the lookup above
        db.rollback()
        existing_pk = find_student_pk(db, stuid)
        if existing_pk != BAD_PK:
            log_with_context(logger, "INFO", "Student added concurrently, reusing it",
                             context={"stuid": stuid, "row_id": existing_pk})
            return existing_pk
        log_with_context(logger, "ERROR", "Failed to insert student",
                         context={"stuid": stuid}, exc_info=True)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(logger, "ERROR", "Failed to insert student",
                         context={"stuid": stuid}, extra_data={"error": str(e)},
                         exc_info=True)
        raise
    row_id = student.row_id
    _commit(db, "create", stuid)

    log_with_context(logger, "INFO", "Created student: {}".format(name),
                     context={"stuid": stuid, "row_id": row_id})
    return row_id


def rename_student(db: Session, original_stuid: str, stuid: str, name: str):
    """
    Change the stuid and name of the student currently keyed by original_stuid.

    Raises:
        StudentConflictError: another student already has the new stuid
    """
    if stuid != original_stuid and find_student_pk(db, stuid) != BAD_PK:
        log_with_context(logger, "WARNING", "Rename would duplicate a student id",
                         context={"stuid": original_stuid, "new_stuid": stuid})
        raise StudentConflictError(stuid)

    updated = db.query(Student).filter(Student.stuid == original_stuid).update(
        {Student.stuid: stuid, Student.name: name}, synchronize_session=False
    )
    _commit(db, "rename", original_stuid)

    log_with_context(logger, "INFO", "Renamed student",
                     context={"stuid": original_stuid, "new_stuid": stuid},
                     extra_data={"rows": updated})


def delete_student(db: Session, stuid: str):
    """Remove the student. Deleting a stuid that is not there is a no-op."""
    deleted = db.query(Student).filter(Student.stuid == stuid).delete(synchronize_session=False)
    _commit(db, "delete", stuid)
    log_with_context(logger, "INFO", "Deleted student",
                     context={"stuid": stuid}, extra_data={"rows": deleted})


def _set_submission_status(db: Session, stuid: str, submitted: bool):
    updated = db.query(Student).filter(Student.stuid == stuid).update(
        {Student.submission_status: submitted}, synchronize_session=False
    )
    _commit(db, "submit" if submitted else "unsubmit", stuid)
    log_with_context(logger, "INFO",
                     "Marked student {}".format("submitted" if submitted else "unsubmitted"),
                     context={"stuid": stuid}, extra_data={"rows": updated})


def mark_submitted(db: Session, stuid: str):
    """Flag the student's work as submitted."""
    _set_submission_status(db, stuid, True)


def mark_unsubmitted(db: Session, stuid: str):
    """Clear the student's submitted flag."""
    _set_submission_status(db, stuid, False)
