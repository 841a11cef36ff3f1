"""
Batch Mutation Processor - applies one operation to a posted list of students.

Processing pipeline for a batch:
1. Fetch the current roster once (a snapshot keyed by stuid)
2. Parse each posted identifier; malformed ones are skipped and counted
3. Identifiers missing from the snapshot are counted as not found
4. Apply the operation to every match through the student store
5. Log a summary with all counts

A failing store call on one student is logged and counted; the rest of
the batch still runs. Callers get the summary back but the HTTP layer
only uses it for logging before redirecting.
"""

import re
import time
from enum import Enum
from typing import Iterable, Optional
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.logging_config import get_logger, log_with_context
from roster.services.student_store import (
    list_students, delete_student, mark_submitted, mark_unsubmitted
)

logger = get_logger("batch")

# Student numbers: letters, digits, '_', '-', '.', starting alphanumeric
STUID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


class BatchOperation(str, Enum):
    DELETE = "delete"
    SUBMIT = "submit"
    UNSUBMIT = "unsubmit"


OPERATIONS = {
    BatchOperation.DELETE: delete_student,
    BatchOperation.SUBMIT: mark_submitted,
    BatchOperation.UNSUBMIT: mark_unsubmitted,
}


class BatchSummary(BaseModel):
    """Counts for one processed batch."""
    operation: BatchOperation
    received: int = 0
    applied: int = 0
    skipped_malformed: int = 0
    not_found: int = 0
    failed: int = 0


def parse_stuid(raw: Optional[str]) -> Optional[str]:
    """
    Parse a posted student identifier.

    Surrounding whitespace is dropped. Returns None when what is left is
    not a well-formed student number.
    """
    if raw is None:
        return None
    candidate = raw.strip()
    if not STUID_PATTERN.match(candidate):
        return None
    return candidate


def process_students(db: Session, raw_ids: Iterable[str],
                     operation: BatchOperation) -> BatchSummary:
    """
    Apply operation to every posted identifier that matches a student.

    Args:
        db: Database session for the request
        raw_ids: Identifier strings exactly as posted
        operation: What to do with each matching student

    Returns:
        BatchSummary with the per-outcome counts
    """
    start_time = time.time()
    apply = OPERATIONS[operation]
    summary = BatchSummary(operation=operation)

    roster = {student.stuid: student for student in list_students(db)}

    for raw in raw_ids:
        summary.received += 1

        stuid = parse_stuid(raw)
        if stuid is None:
            summary.skipped_malformed += 1
            log_with_context(logger, "DEBUG", "Skipping malformed student id",
                             context={"operation": operation.value},
                             extra_data={"raw": raw})
            continue

        if stuid not in roster:
            summary.not_found += 1
            continue

        try:
            apply(db, stuid)
            summary.applied += 1
        except SQLAlchemyError as e:
            summary.failed += 1
            db.rollback()
            log_with_context(logger, "ERROR",
                             "Failed to {} student {}: {}".format(operation.value, stuid, str(e)),
                             context={"stuid": stuid, "operation": operation.value},
                             exc_info=True)

    duration_ms = (time.time() - start_time) * 1000
    level = "WARNING" if summary.skipped_malformed or summary.failed else "INFO"
    log_with_context(logger, level,
        "Batch {} complete: {} applied, {} malformed, {} not found, {} failed".format(
            operation.value, summary.applied, summary.skipped_malformed,
            summary.not_found, summary.failed),
        context={"operation": operation.value},
        extra_data={"duration_ms": round(duration_ms, 2), "received": summary.received})

    return summary
