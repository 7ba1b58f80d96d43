"""
AnalyticsEvent model — append-only log of lifecycle events.

Rows are never updated or deleted; aggregation happens at read time.
"""
from sqlalchemy import Column, Text, DateTime, JSON

from app.database import Base


class AnalyticsEvent(Base):
    __tablename__ = 'analytics_events'

    id = Column(Text, primary_key=True)
    lead_id = Column(Text, nullable=True, index=True)
    configuration_id = Column(Text, nullable=True, index=True)
    event_type = Column(Text, nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)
    recorded_at = Column(DateTime, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'configuration_id': self.configuration_id,
            'event_type': self.event_type,
            'data': self.data or {},
            'recorded_at': self.recorded_at.isoformat() if self.recorded_at else None,
        }
