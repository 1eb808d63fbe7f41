"""
Student Attendance database model.

Driver-recorded daily present/absent mark for a rider on a route.
"""

from sqlalchemy import Column, Integer, Text, Date, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.fleet_enums import AttendanceStatus


class StudentAttendance(Base):
    __tablename__ = "student_attendance"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=False)

    attendance_date = Column(Date, nullable=False, index=True)
    status = Column(Enum(AttendanceStatus), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('student_id', 'route_id', 'attendance_date', name='uq_student_attendance_student_route_day'),
    )
