import logging

import pytest
from sqlalchemy.exc import OperationalError

from roster.services import batch_processor
from roster.services.batch_processor import BatchOperation, process_students, parse_stuid
from roster.services.student_store import (
    BAD_PK, create_student, find_student_pk, mark_submitted, list_students,
    list_submitted_students
)


class TestParseStuid:
    """Parsing posted identifiers"""

    @pytest.mark.parametrize("raw, expected", [
        ("001", "001"),
        ("  001 ", "001"),
        ("A-12_b.3", "A-12_b.3"),
    ])
    def test_well_formed(self, raw, expected):
        assert parse_stuid(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "bad id", "-001", "x" * 65, "00;1"])
    def test_malformed(self, raw):
        assert parse_stuid(raw) is None


class TestProcessStudents:
    """Applying one operation to a posted list of ids"""

    def test_skips_malformed_and_applies_well_formed(self, db):
        create_student(db, "001", "Alice")
        create_student(db, "002", "Bob")

        summary = process_students(db, ["001", "not valid!"], BatchOperation.SUBMIT)

        assert summary.applied == 1
        assert summary.skipped_malformed == 1
        assert summary.failed == 0
        assert [s.stuid for s in list_submitted_students(db)] == ["001"]

    def test_unknown_ids_are_counted_not_raised(self, db):
        create_student(db, "001", "Alice")
        summary = process_students(db, ["999"], BatchOperation.DELETE)
        assert summary.not_found == 1
        assert summary.applied == 0
        assert find_student_pk(db, "001") != BAD_PK

    def test_delete(self, db):
        create_student(db, "001", "Alice")
        create_student(db, "002", "Bob")
        summary = process_students(db, ["001", "002"], BatchOperation.DELETE)
        assert summary.received == 2
        assert summary.applied == 2
        assert find_student_pk(db, "001") == BAD_PK
        assert find_student_pk(db, "002") == BAD_PK

    def test_empty_batch(self, db):
        summary = process_students(db, [], BatchOperation.UNSUBMIT)
        assert summary.received == 0
        assert summary.applied == 0

    def test_store_failure_on_one_student_does_not_stop_batch(self, db, monkeypatch):
        create_student(db, "001", "Alice")
        create_student(db, "002", "Bob")

        def flaky_submit(session, stuid):
            if stuid == "001":
                raise OperationalError("UPDATE Student", {}, Exception("database is locked"))
            mark_submitted(session, stuid)

        monkeypatch.setitem(batch_processor.OPERATIONS, BatchOperation.SUBMIT, flaky_submit)

        summary = process_students(db, ["001", "002"], BatchOperation.SUBMIT)

        assert summary.failed == 1
        assert summary.applied == 1
        assert [s.stuid for s in list_submitted_students(db)] == ["002"]

    def test_end_to_end_scenario(self, db):
        create_student(db, "001", "Alice")
        create_student(db, "002", "Bob")
        mark_submitted(db, "001")

        assert [s.name for s in list_submitted_students(db)] == ["Alice"]

        summary = process_students(db, ["001", "999"], BatchOperation.UNSUBMIT)

        assert summary.applied == 1
        assert summary.not_found == 1
        assert list_submitted_students(db) == []


class TestBatchLogging:
    """What a batch writes to the batch channel"""

    def test_summary_reports_skipped_count_as_warning(self, db, caplog):
        create_student(db, "001", "Alice")

        with caplog.at_level(logging.INFO, logger="roster.batch"):
            process_students(db, ["001", "not valid!", ""], BatchOperation.SUBMIT)

        summaries = [r for r in caplog.records
                     if r.name == "roster.batch" and "complete" in r.getMessage()]
        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.levelname == "WARNING"
        assert "2 malformed" in summary.getMessage()
        assert summary.context == {"operation": "submit"}
        assert summary.extra_data["received"] == 3

    def test_clean_batch_summary_is_info(self, db, caplog):
        create_student(db, "001", "Alice")

        with caplog.at_level(logging.INFO, logger="roster.batch"):
            process_students(db, ["001"], BatchOperation.SUBMIT)

        summary = [r for r in caplog.records if "complete" in r.getMessage()][-1]
        assert summary.levelname == "INFO"
        assert "0 malformed" in summary.getMessage()

    def test_store_failure_is_logged_with_traceback(self, db, caplog, monkeypatch):
        create_student(db, "001", "Alice")

        def locked(session, stuid):
            raise OperationalError("UPDATE Student", {}, Exception("database is locked"))

        monkeypatch.setitem(batch_processor.OPERATIONS, BatchOperation.UNSUBMIT, locked)

        with caplog.at_level(logging.INFO, logger="roster.batch"):
            process_students(db, ["001"], BatchOperation.UNSUBMIT)

        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert len(errors) == 1
        assert errors[0].exc_info is not None
        assert errors[0].exc_info[0] is OperationalError


class TestRosterSnapshot:
    """The roster is read once per batch"""

    def test_students_listed_once_per_batch(self, db, monkeypatch):
        create_student(db, "001", "Alice")
        create_student(db, "002", "Bob")
        calls = []

        def counting_list_students(session):
            calls.append(session)
            return list_students(session)

        monkeypatch.setattr(batch_processor, "list_students", counting_list_students)

        summary = process_students(db, ["001", "002", "003", "bad id"], BatchOperation.SUBMIT)

        assert len(calls) == 1
        assert summary.applied == 2
