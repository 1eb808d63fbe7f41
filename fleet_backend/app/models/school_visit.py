"""
School Visit database model.

A driver's arrival at / departure from a school during a day's run.
"""

from sqlalchemy import Column, Integer, Text, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class SchoolVisit(Base):
    __tablename__ = "school_visits"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey('schools.id'), nullable=False)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=False)

    visit_date = Column(Date, nullable=False, index=True)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    departed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('driver_id', 'school_id', 'route_id', 'visit_date', name='uq_school_visit_driver_school_route_day'),
    )

    def __repr__(self):
        return f"<SchoolVisit(id={self.id}, driver_id={self.driver_id}, school_id={self.school_id})>"
