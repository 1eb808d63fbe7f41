"""
User database model.

Admins, drivers and parents share one table. Driver duty state and the
check-in inspection snapshot live on the driver's row.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.fleet_enums import FuelLevel


class User(Base):
    """
    User model.

    Drivers are mutated only by the duty lifecycle and assignment services.
    Deactivation is an administrative flow outside this service.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.PARENT, nullable=False)

    # Multi-tenant scope
    company_id = Column(Integer, ForeignKey('companies.id'), index=True, nullable=True)

    # Duty state (drivers only)
    is_on_duty = Column(Boolean, default=False, nullable=False, index=True)
    duty_start_time = Column(DateTime(timezone=True), nullable=True)
    assigned_route_id = Column(Integer, index=True, nullable=True)

    # Check-in inspection snapshot
    last_check_in_fuel_level = Column(Enum(FuelLevel), nullable=True)
    last_check_in_interior_clean = Column(Boolean, nullable=True)
    last_check_in_exterior_clean = Column(Boolean, nullable=True)
    last_check_in_time = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
