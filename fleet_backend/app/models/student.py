"""
Student (rider) and guardian link database models.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class Student(Base):
    """
    Student model.

    A rider assigned to a route and, within it, to one pickup stop.
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=True)

    school_id = Column(Integer, ForeignKey('schools.id'), nullable=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=True, index=True)
    stop_id = Column(Integer, ForeignKey('route_stops.id'), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Student(id={self.id}, route_id={self.route_id}, stop_id={self.stop_id})>"


class ParentChildLink(Base):
    """Guardian (user with role parent) linked to a student."""
    __tablename__ = "parent_child_links"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    parent_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True)

    linked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('parent_id', 'student_id', name='uq_parent_child_links_parent_student'),
    )
