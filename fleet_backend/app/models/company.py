"""
Company database model.

Tenancy anchor: every fleet resource belongs to exactly one company.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}')>"
