"""
Bus database model.

A bus is owned by a company and held by at most one driver at a time.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.fleet_enums import BusStatus, FuelLevel


class Bus(Base):
    """
    Bus model.

    ``driver_id`` is an exclusive back reference, not ownership. Status
    transitions belong to the duty lifecycle; binding never changes status
    except when a previous holder is released to ``idle``.
    """
    __tablename__ = "buses"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)

    # Identification
    bus_number = Column(String(50), unique=True, nullable=False, index=True)
    capacity = Column(Integer, nullable=True)
    license_plate = Column(String(50), nullable=True)

    # Assignment
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    current_route_id = Column(Integer, ForeignKey('routes.id'), nullable=True)

    # Status
    status = Column(Enum(BusStatus), default=BusStatus.IDLE, nullable=False, index=True)

    # Live telemetry (written by the tracking collaborator)
    current_latitude = Column(Numeric(10, 8), nullable=True)
    current_longitude = Column(Numeric(11, 8), nullable=True)
    speed = Column(Numeric(5, 2), nullable=True)

    fuel_level = Column(Enum(FuelLevel), nullable=True)
    mileage = Column(Integer, nullable=True)

    last_updated = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Bus(id={self.id}, number='{self.bus_number}', driver_id={self.driver_id}, status='{self.status.value}')>"
