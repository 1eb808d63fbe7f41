"""
Route, route stop and route school database models.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Numeric, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class Route(Base):
    """
    Route model.

    A transport plan of a company with an ordered list of stops and the
    schools it serves. At most one active driver per route.
    """
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    estimated_duration = Column(Integer, nullable=True)  # minutes

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Route(id={self.id}, name='{self.name}', driver_id={self.driver_id})>"


class RouteStop(Base):
    """Ordered pickup / drop-off point of a route."""
    __tablename__ = "route_stops"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    route_id = Column(Integer, ForeignKey('routes.id', ondelete='CASCADE'), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey('schools.id'), nullable=True)

    name = Column(String(200), nullable=False)
    address = Column(Text, nullable=False)
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)

    order = Column(Integer, nullable=False)  # 1, 2, 3, ...
    scheduled_time = Column(String(5), nullable=True)  # HH:MM

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<RouteStop(id={self.id}, route_id={self.route_id}, order={self.order})>"


class RouteSchool(Base):
    """School served by a route, in visiting order."""
    __tablename__ = "route_schools"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    route_id = Column(Integer, ForeignKey('routes.id', ondelete='CASCADE'), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey('schools.id', ondelete='CASCADE'), nullable=False, index=True)
    visit_order = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint('route_id', 'school_id', name='uq_route_schools_route_school'),
    )
