from sqlalchemy import Column, Integer, String
from ..core.db import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name = Column(String(40), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
