"""
Configuration model — routing thresholds, templates, and delivery settings.

At most one row may be 'active'. The partial unique index enforces it at the
store; services.configurations swaps the active row inside one transaction.
"""
from sqlalchemy import Column, Float, Text, DateTime, JSON, Index, text
from sqlalchemy.sql import func

from app.database import Base


class Configuration(Base):
    __tablename__ = 'configurations'

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False, default='')
    status = Column(Text, nullable=False, default='draft')  # draft | active | archived
    thresholds = Column(JSON, nullable=False, default=dict)
    email_templates = Column(JSON, nullable=False, default=dict)
    sdr = Column(JSON, nullable=False, default=dict)
    support_team = Column(JSON, nullable=False, default=dict)
    account_team = Column(JSON, nullable=False, default=dict)
    email_settings = Column(JSON, nullable=False, default=dict)
    response_to_lead = Column(JSON, nullable=False, default=dict)
    rollout_percentage = Column(Float, nullable=False, default=1.0)
    prompts = Column(JSON, nullable=False, default=dict)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    activated_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            'uq_configurations_single_active', 'status', unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )
