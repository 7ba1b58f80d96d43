"""
Lead model — one row per inbound inquiry, with its lifecycle state.

The classification history lives in ``classification_entries``; every other
piece of lifecycle state is a column here. ``version`` is the optimistic
concurrency token and is bumped by every write (see services.store).
"""
from sqlalchemy import Column, Integer, Boolean, Text, DateTime, JSON

from app.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True)  # uuid4 hex

    # Submission (immutable after insert)
    lead_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    company = Column(Text, nullable=False)
    message = Column(Text, nullable=False)

    # Status
    phase = Column(Text, nullable=False, default='classify', index=True)
    received_at = Column(DateTime, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    sent_by = Column(Text, nullable=True)  # 'bot', SDR name, or reviewer

    ai_authoritative = Column(Boolean, nullable=False, default=True)
    configuration_id = Column(Text, nullable=True)

    bot_research = Column(JSON, nullable=True)
    draft = Column(JSON, nullable=True)  # {text, created_at, edited_at, last_edited_by}
    edit_note = Column(Text, nullable=True)
    matched_case_studies = Column(JSON, default=list)
    support_feedback = Column(JSON, nullable=True)
    reroute = Column(JSON, nullable=True)
    sent_email = Column(JSON, nullable=True)  # {subject, html}
    meeting_booked_at = Column(DateTime, nullable=True)

    delivery_claimed_at = Column(DateTime, nullable=True)
    last_error = Column(JSON, nullable=True)  # {stage, message, timestamp}

    # 'metadata' is reserved on declarative classes
    test_metadata = Column('metadata', JSON, nullable=True)

    version = Column(Integer, nullable=False, default=0)
