"""
Analytics event sink — append-only lifecycle events.

Recording never blocks a lifecycle operation: failures are logged and dropped.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from app.database import get_session
from app.lifecycle.base import utcnow
from app.models.analytics_event import AnalyticsEvent

logger = logging.getLogger('services.analytics')


def record_event(lead_id: Optional[str], event_type: str, data: Dict[str, Any],
                 configuration_id: Optional[str] = None) -> Optional[str]:
    """Append one event. Returns its id, or None if the write failed."""
    event_id = uuid.uuid4().hex
    session = get_session()
    try:
        session.add(AnalyticsEvent(
            id=event_id,
            lead_id=lead_id,
            configuration_id=configuration_id,
            event_type=event_type,
            data=data or {},
            recorded_at=utcnow(),
        ))
        session.commit()
        logger.debug("Recorded %s for lead %s", event_type, lead_id, extra={'lead_id': lead_id})
        return event_id
    except Exception:
        session.rollback()
        logger.error("Failed to record %s event for lead %s", event_type, lead_id, exc_info=True)
        return None
    finally:
        session.close()


def list_events(event_type: Optional[str] = None, lead_id: Optional[str] = None,
                configuration_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Events as plain dicts, oldest first."""
    session = get_session()
    try:
        query = session.query(AnalyticsEvent)
        if event_type:
            query = query.filter(AnalyticsEvent.event_type == event_type)
        if lead_id:
            query = query.filter(AnalyticsEvent.lead_id == lead_id)
        if configuration_id:
            query = query.filter(AnalyticsEvent.configuration_id == configuration_id)
        return [e.to_dict() for e in query.order_by(AnalyticsEvent.recorded_at).all()]
    finally:
        session.close()
