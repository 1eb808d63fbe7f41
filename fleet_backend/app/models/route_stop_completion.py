"""
Route Stop Completion database model.

Records a bus reaching a route stop, once per stop per day.
"""

from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class RouteStopCompletion(Base):
    """
    Route Stop Completion model.

    Monotonic within a day: rows are only removed by the explicit daily
    reset of a route.
    """
    __tablename__ = "route_stop_completions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)
    route_stop_id = Column(Integer, ForeignKey('route_stops.id'), nullable=False, index=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=False, index=True)
    bus_id = Column(Integer, ForeignKey('buses.id'), nullable=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    stop_sequence = Column(Integer, nullable=False, default=0)
    completion_date = Column(Date, nullable=False, index=True)
    arrived_at = Column(DateTime(timezone=True), nullable=False)
    departed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('route_stop_id', 'completion_date', name='uq_route_stop_completions_stop_day'),
    )

    def __repr__(self):
        return f"<RouteStopCompletion(id={self.id}, stop_id={self.route_stop_id}, date={self.completion_date})>"
