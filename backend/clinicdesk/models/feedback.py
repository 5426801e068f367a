from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from ..core.db import Base


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)

    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(120), nullable=False, index=True)   # stored lowercase
    phone = Column(String(20), nullable=False)
    company = Column(String(100), nullable=False, default="")
    message = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default="PENDING", index=True)  # PENDING | READ | REPLIED | ARCHIVED
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
