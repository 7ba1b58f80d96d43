"""
Lifecycle vocabulary — enums and value types shared by every lifecycle module.

The classification enum is closed: every registry keyed by it (terminal
states, thresholds, terminal actions) is checked for completeness at import.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Classification(str, Enum):
    HIGH_QUALITY = 'high-quality'
    LOW_QUALITY = 'low-quality'
    SUPPORT = 'support'
    EXISTING = 'existing'
    IRRELEVANT = 'irrelevant'


# Older clients and stored documents use these names
CLASSIFICATION_ALIASES = {
    'duplicate': Classification.EXISTING,
    'dead': Classification.IRRELEVANT,
}


def parse_classification(value) -> Classification:
    """Accept a Classification, its value, or a legacy alias. Raises ValueError."""
    if isinstance(value, Classification):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in CLASSIFICATION_ALIASES:
            return CLASSIFICATION_ALIASES[key]
        return Classification(key)
    raise ValueError(f"Not a classification: {value!r}")


class Author(str, Enum):
    BOT = 'bot'
    HUMAN = 'human'


class Phase(str, Enum):
    CLASSIFY = 'classify'
    REVIEW = 'review'
    DONE = 'done'


class TerminalState(str, Enum):
    SENT_MEETING_OFFER = 'sent_meeting_offer'
    SENT_GENERIC = 'sent_generic'
    FORWARDED_SUPPORT = 'forwarded_support'
    FORWARDED_ACCOUNT_TEAM = 'forwarded_account_team'
    DEAD = 'dead'


class RerouteSource(str, Enum):
    CUSTOMER = 'customer'
    SUPPORT = 'support'
    SALES = 'sales'


class RoutingAction(str, Enum):
    AUTO_SEND = 'auto_send'
    REQUIRE_REVIEW = 'require_review'


# sent_by for transitions performed without a named reviewer
BOT_ACTOR = 'bot'
SYSTEM_ACTOR = 'system'


@dataclass(frozen=True)
class ClassificationEntry:
    """One classification decision. Never edited once recorded."""
    author: Author
    classification: Classification
    timestamp: datetime
    needs_review: Optional[bool] = None
    applied_threshold: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'author': self.author.value,
            'classification': self.classification.value,
            'timestamp': self.timestamp.isoformat(),
            'needs_review': self.needs_review,
            'applied_threshold': self.applied_threshold,
        }


@dataclass(frozen=True)
class Submission:
    lead_name: str
    email: str
    company: str
    message: str

    @property
    def first_name(self) -> str:
        return self.lead_name.strip().split(' ')[0] if self.lead_name.strip() else ''


@dataclass(frozen=True)
class BotResult:
    """Output of the classification service for one lead."""
    classification: Classification
    confidence: float
    reasoning: str = ''
    existing_customer: bool = False
    crm_record_id: Optional[str] = None
    research_report: Optional[str] = None

    def to_research(self, timestamp: datetime) -> Dict[str, Any]:
        return {
            'timestamp': timestamp.isoformat(),
            'classification': self.classification.value,
            'confidence': self.confidence,
            'reasoning': self.reasoning,
            'existing_customer': self.existing_customer,
            'crm_record_id': self.crm_record_id,
            'research_report': self.research_report,
        }


@dataclass(frozen=True)
class RoutingDecision:
    action: RoutingAction
    needs_review: bool
    applied_threshold: float


@dataclass
class ConfigSnapshot:
    """Read-only view of the active configuration used by one operation."""
    id: str
    name: str
    thresholds: Dict[str, float]
    email_templates: Dict[str, Dict[str, str]]
    sdr: Dict[str, str]
    support_team: Dict[str, str]
    account_team: Dict[str, str]
    email_settings: Dict[str, Any]
    response_to_lead: Dict[str, bool]
    rollout_percentage: float = 1.0
    prompts: Dict[str, str] = field(default_factory=dict)
    status: str = 'active'

    def threshold_for(self, classification: Classification) -> float:
        return float(self.thresholds[classification.value])

    def template(self, key: str) -> Dict[str, str]:
        return self.email_templates.get(key) or {}

    def responds_to_lead(self, classification: Classification) -> bool:
        return bool(self.response_to_lead.get(classification.value, True))

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_settings.get('enabled', True))

    @property
    def test_mode_email(self) -> Optional[str]:
        """Redirect address when test mode is on, else None."""
        if self.email_settings.get('test_mode') and self.email_settings.get('test_email'):
            return self.email_settings['test_email']
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'thresholds': dict(self.thresholds),
            'email_templates': self.email_templates,
            'sdr': self.sdr,
            'support_team': self.support_team,
            'account_team': self.account_team,
            'email_settings': self.email_settings,
            'response_to_lead': self.response_to_lead,
            'rollout_percentage': self.rollout_percentage,
            'prompts': self.prompts,
        }


@dataclass
class DeliveryResult:
    """Outcome of one email send. The delivery client never raises."""
    success: bool
    actual_recipient: str = ''
    test_mode: bool = False
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ActionOutcome:
    """Outcome of a terminal action (possibly several sends)."""
    success: bool
    sent_content: Optional[Dict[str, str]] = None
    forwarded_to: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
