"""
Lead store — SQLAlchemy persistence for leads and their classification history.

Every write goes through commit_transition(), which applies the lead's changes
under an optimistic version check and, in the same transaction, appends the
new classification entry at ``seq = len(history)``. Losing either race raises
ConcurrencyConflict and nothing is written.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from app.database import get_session
from app.lifecycle.base import (
    Author, Classification, ClassificationEntry, Phase, Submission, TerminalState,
)
from app.lifecycle.errors import ConcurrencyConflict, NotFound
from app.lifecycle.history import ClassificationHistory
from app.lifecycle.terminal import derive_terminal_state
from app.models.classification_entry import ClassificationRecord
from app.models.lead import Lead

logger = logging.getLogger('services.store')

# Columns a transition may change; the submission and id are immutable
MUTABLE_FIELDS = frozenset({
    'phase', 'sent_at', 'sent_by', 'ai_authoritative', 'bot_research', 'draft',
    'edit_note', 'matched_case_studies', 'support_feedback', 'reroute',
    'sent_email', 'meeting_booked_at', 'delivery_claimed_at', 'last_error',
})


@dataclass
class LeadRecord:
    """Detached snapshot of one lead at a given version."""
    id: str
    submission: Submission
    phase: Phase
    received_at: datetime
    history: ClassificationHistory
    version: int = 0
    sent_at: Optional[datetime] = None
    sent_by: Optional[str] = None
    ai_authoritative: bool = True
    configuration_id: Optional[str] = None
    bot_research: Optional[Dict[str, Any]] = None
    draft: Optional[Dict[str, Any]] = None
    edit_note: Optional[str] = None
    matched_case_studies: List[Dict[str, Any]] = field(default_factory=list)
    support_feedback: Optional[Dict[str, Any]] = None
    reroute: Optional[Dict[str, Any]] = None
    sent_email: Optional[Dict[str, str]] = None
    meeting_booked_at: Optional[datetime] = None
    delivery_claimed_at: Optional[datetime] = None
    last_error: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def current_classification(self) -> Optional[Classification]:
        return self.history.current_classification()

    @property
    def terminal_state(self) -> Optional[TerminalState]:
        return derive_terminal_state(self.phase, self.history)

    def to_dict(self) -> Dict[str, Any]:
        terminal = self.terminal_state
        current = self.current_classification
        return {
            'id': self.id,
            'submission': {
                'lead_name': self.submission.lead_name,
                'email': self.submission.email,
                'company': self.submission.company,
                'message': self.submission.message,
            },
            'status': {
                'phase': self.phase.value,
                'received_at': _iso(self.received_at),
                'sent_at': _iso(self.sent_at),
                'sent_by': self.sent_by,
            },
            'classification': current.value if current else None,
            'terminal_state': terminal.value if terminal else None,
            'classifications': self.history.to_list(),
            'bot_research': self.bot_research,
            'draft': self.draft,
            'edit_note': self.edit_note,
            'matched_case_studies': self.matched_case_studies,
            'support_feedback': self.support_feedback,
            'reroute': self.reroute,
            'sent_email': self.sent_email,
            'meeting_booked_at': _iso(self.meeting_booked_at),
            'last_error': self.last_error,
            'ai_authoritative': self.ai_authoritative,
            'configuration_id': self.configuration_id,
            'metadata': self.metadata,
            'version': self.version,
        }


def _iso(value):
    return value.isoformat() if value else None


def _to_entry(row: ClassificationRecord) -> ClassificationEntry:
    return ClassificationEntry(
        author=Author(row.author),
        classification=Classification(row.classification),
        timestamp=row.timestamp,
        needs_review=row.needs_review,
        applied_threshold=row.applied_threshold,
    )


def _to_record(row: Lead, entry_rows) -> LeadRecord:
    ordered = sorted(entry_rows, key=lambda r: r.seq, reverse=True)
    return LeadRecord(
        id=row.id,
        submission=Submission(
            lead_name=row.lead_name, email=row.email,
            company=row.company, message=row.message,
        ),
        phase=Phase(row.phase),
        received_at=row.received_at,
        history=ClassificationHistory(_to_entry(r) for r in ordered),
        version=row.version,
        sent_at=row.sent_at,
        sent_by=row.sent_by,
        ai_authoritative=bool(row.ai_authoritative),
        configuration_id=row.configuration_id,
        bot_research=row.bot_research,
        draft=row.draft,
        edit_note=row.edit_note,
        matched_case_studies=list(row.matched_case_studies or []),
        support_feedback=row.support_feedback,
        reroute=row.reroute,
        sent_email=row.sent_email,
        meeting_booked_at=row.meeting_booked_at,
        delivery_claimed_at=row.delivery_claimed_at,
        last_error=row.last_error,
        metadata=row.test_metadata,
    )


# ── Reads ─────────────────────────────────────────────────────────────────────

def get_lead(lead_id: str) -> LeadRecord:
    """Load one lead with its history. Raises NotFound."""
    session = get_session()
    try:
        row = session.get(Lead, lead_id)
        if row is None:
            raise NotFound(f"Lead {lead_id} not found", lead_id=lead_id)
        entries = (
            session.query(ClassificationRecord)
            .filter(ClassificationRecord.lead_id == lead_id)
            .all()
        )
        return _to_record(row, entries)
    finally:
        session.close()


def list_leads(phase: Optional[str] = None, limit: Optional[int] = None) -> List[LeadRecord]:
    """All leads (optionally one phase), newest first, with histories."""
    session = get_session()
    try:
        query = session.query(Lead).order_by(Lead.received_at.desc())
        if phase:
            query = query.filter(Lead.phase == phase)
        if limit:
            query = query.limit(limit)
        rows = query.all()
        if not rows:
            return []

        by_lead: Dict[str, list] = {row.id: [] for row in rows}
        entries = (
            session.query(ClassificationRecord)
            .filter(ClassificationRecord.lead_id.in_(list(by_lead)))
            .all()
        )
        for entry in entries:
            by_lead[entry.lead_id].append(entry)
        return [_to_record(row, by_lead[row.id]) for row in rows]
    finally:
        session.close()


# ── Writes ────────────────────────────────────────────────────────────────────

def create_lead(submission: Submission, phase: Phase, received_at: datetime,
                ai_authoritative: bool = True, configuration_id: Optional[str] = None,
                metadata: Optional[Dict[str, Any]] = None) -> LeadRecord:
    """Insert a new lead with an empty history."""
    lead_id = uuid.uuid4().hex
    session = get_session()
    try:
        session.add(Lead(
            id=lead_id,
            lead_name=submission.lead_name,
            email=submission.email,
            company=submission.company,
            message=submission.message,
            phase=phase.value,
            received_at=received_at,
            ai_authoritative=ai_authoritative,
            configuration_id=configuration_id,
            matched_case_studies=[],
            test_metadata=metadata,
            version=0,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    logger.info("Lead %s created in %s", lead_id, phase.value,
                extra={'lead_id': lead_id, 'phase': phase.value})
    return get_lead(lead_id)


def commit_transition(lead: LeadRecord, changes: Optional[Dict[str, Any]] = None,
                      new_entry: Optional[ClassificationEntry] = None) -> LeadRecord:
    """
    Apply ``changes`` to the lead if nobody wrote since ``lead.version``.

    When ``new_entry`` is given it becomes the authoritative classification in
    the same transaction. Returns the fresh snapshot.
    """
    values = dict(changes or {})
    unknown = set(values) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot change lead fields: {sorted(unknown)}")
    for key in ('phase',):
        if key in values and isinstance(values[key], Phase):
            values[key] = values[key].value
    values['version'] = lead.version + 1

    session = get_session()
    try:
        if new_entry is not None:
            session.add(ClassificationRecord(
                lead_id=lead.id,
                seq=len(lead.history),
                author=new_entry.author.value,
                classification=new_entry.classification.value,
                timestamp=new_entry.timestamp,
                needs_review=new_entry.needs_review,
                applied_threshold=new_entry.applied_threshold,
            ))
            session.flush()

        result = session.execute(
            update(Lead)
            .where(Lead.id == lead.id, Lead.version == lead.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            raise ConcurrencyConflict(
                f"Lead {lead.id} changed since version {lead.version}", lead_id=lead.id,
            )
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConcurrencyConflict(
            f"Lead {lead.id} history changed since version {lead.version}", lead_id=lead.id,
        )
    except ConcurrencyConflict:
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    return get_lead(lead.id)
