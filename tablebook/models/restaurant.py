"""Restaurant tenant model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Uuid

from tablebook.database import Base


class Restaurant(Base):
    """Restaurant tenant"""
    __tablename__ = "restaurants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)

    # Capacity (None means no aggregate seating ceiling is enforced)
    seating_capacity = Column(Integer)
    tables_count = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
