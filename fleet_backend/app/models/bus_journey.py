"""
Bus Journey database model.

One row per bus per calendar day with four checkpoint timestamps.
"""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class BusJourney(Base):
    """
    Bus Journey model.

    Creation is idempotent per (bus, day) through the unique constraint.
    Checkpoints may arrive in any order; only ``arrive_homebase`` derives
    ``total_duration_minutes``.
    """
    __tablename__ = "bus_journeys"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)
    bus_id = Column(Integer, ForeignKey('buses.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=True)
    school_id = Column(Integer, ForeignKey('schools.id'), nullable=True)

    journey_date = Column(Date, nullable=False, index=True)

    # Checkpoints
    depart_homebase_at = Column(DateTime(timezone=True), nullable=True)
    arrive_school_at = Column(DateTime(timezone=True), nullable=True)
    depart_school_at = Column(DateTime(timezone=True), nullable=True)
    arrive_homebase_at = Column(DateTime(timezone=True), nullable=True)

    homebase_address = Column(String(500), nullable=True)
    total_duration_minutes = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('bus_id', 'journey_date', name='uq_bus_journeys_bus_day'),
    )

    def __repr__(self):
        return f"<BusJourney(id={self.id}, bus_id={self.bus_id}, date={self.journey_date})>"
