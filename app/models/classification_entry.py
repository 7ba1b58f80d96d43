"""
ClassificationRecord — one row per classification decision on a lead.

``seq`` counts up from 0 per lead; the newest decision has the highest seq.
The (lead_id, seq) unique constraint makes appending an entry atomic: two
writers racing for the same slot cannot both succeed.
"""
from sqlalchemy import (
    Column, Integer, Float, Boolean, Text, DateTime, ForeignKey, UniqueConstraint,
)

from app.database import Base


class ClassificationRecord(Base):
    __tablename__ = 'classification_entries'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    author = Column(Text, nullable=False)  # 'bot' | 'human'
    classification = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    needs_review = Column(Boolean, nullable=True)
    applied_threshold = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint('lead_id', 'seq', name='uq_classification_entries_lead_seq'),
    )
