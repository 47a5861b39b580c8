"""Floor plan and table models shared with the floor-plan editor"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Enum, Uuid

from tablebook.database import Base


def _enum_values(enum_cls):
    """Persist enum values rather than member names"""
    return [member.value for member in enum_cls]


class TableStatus(str, enum.Enum):
    """Operational status of a physical table"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    CLEANING = "cleaning"
    OUT_OF_ORDER = "out_of_order"


class FloorPlan(Base):
    """Dining room layout owned by a restaurant"""
    __tablename__ = "floor_plans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Table(Base):
    """Physical table within a floor plan"""
    __tablename__ = "floor_plan_tables"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    floor_plan_id = Column(Uuid, ForeignKey("floor_plans.id"), nullable=False, index=True)

    number = Column(String(20), nullable=False)  # e.g. "T1", "12"
    capacity = Column(Integer, nullable=False)
    shape = Column(String(20), default="round")  # round, square, rectangle, oval

    status = Column(Enum(TableStatus, name="table_status", values_callable=_enum_values), default=TableStatus.AVAILABLE, nullable=False)
    is_active = Column(Boolean, default=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
