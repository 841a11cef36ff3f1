"""
Student model - the roster entry tracking one student's submission.

Students are identified by their externally supplied student number
(stuid). The integer primary key is store-internal and only handed back
from create_student so callers have a dense numeric handle.
"""

import time
from sqlalchemy import Column, Integer, Text, Boolean
from roster.database import Base


class Student(Base):
    """
    SQLAlchemy model for the Student table.

    The table itself is created by sql/tables.sql at bootstrap; this
    mapping is used for inserts and updates.
    """
    __tablename__ = "Student"

    row_id = Column("id", Integer, primary_key=True, autoincrement=True,
                    doc="Surrogate key assigned by SQLite")
    stuid = Column(Text, nullable=False, unique=True,
                   doc="Student number, the business key")
    name = Column(Text, nullable=False,
                  doc="Display name")
    submission_status = Column(Boolean, nullable=False, default=False,
                               doc="True once the assignment has been handed in")
    submission_time = Column(Integer, nullable=False, default=lambda: int(time.time()),
                             doc="Epoch seconds when the student was added")

    def __repr__(self):
        return f"<Student(row_id={self.row_id}, stuid='{self.stuid}', submitted={self.submission_status})>"
