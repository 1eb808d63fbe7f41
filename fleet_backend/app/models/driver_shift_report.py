"""
Driver Shift Report database model.

Immutable end-of-duty summary, written once per check-out.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.fleet_enums import FuelLevel


class DriverShiftReport(Base):
    """
    Driver Shift Report model.

    Names of driver, bus and route are copied at synthesis time so the report
    stays readable after the referenced rows change.
    """
    __tablename__ = "driver_shift_reports"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    driver_name = Column(String(200), nullable=False)
    bus_id = Column(Integer, ForeignKey('buses.id'), nullable=True)
    bus_number = Column(String(50), nullable=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=True)
    route_name = Column(String(200), nullable=True)

    shift_start_time = Column(DateTime(timezone=True), nullable=False)
    shift_end_time = Column(DateTime(timezone=True), nullable=False)
    total_duration_minutes = Column(Integer, nullable=False)

    starting_fuel_level = Column(Enum(FuelLevel), nullable=True)
    ending_fuel_level = Column(Enum(FuelLevel), nullable=True)
    starting_mileage = Column(Integer, nullable=True)
    ending_mileage = Column(Integer, nullable=True)
    miles_driven = Column(Integer, nullable=True)

    schools_visited = Column(Integer, default=0, nullable=False)
    students_picked_up = Column(Integer, default=0, nullable=False)
    students_dropped_off = Column(Integer, default=0, nullable=False)
    issues_reported = Column(Integer, default=0, nullable=False)

    interior_clean_start = Column(Boolean, nullable=True)
    exterior_clean_start = Column(Boolean, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<DriverShiftReport(id={self.id}, driver_id={self.driver_id}, minutes={self.total_duration_minutes})>"
