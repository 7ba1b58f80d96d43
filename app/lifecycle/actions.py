"""
Terminal actions — the delivery side effect that closes a lead.

One action per classification. Each receives the lead, the active
configuration and a ``send`` callable with the signature of
services.email_delivery.send_email, and reports an ActionOutcome. An action
only reports success when the delivery that defines its outcome succeeded.
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, Type

from app.lifecycle.base import ActionOutcome, Classification, DeliveryResult
from app.lifecycle.emails import assemble_meeting_offer, render_template

Send = Callable[..., DeliveryResult]


def _full_name(person: Dict[str, str]) -> str:
    return ' '.join(p for p in (person.get('name'), person.get('last_name')) if p)


class TerminalAction(ABC):
    classification: Classification = None
    description: str = ''
    # Analytics 'lead_forwarded' destination, if this action forwards internally
    forwards_to: str = None

    @abstractmethod
    def execute(self, lead, config, send: Send) -> ActionOutcome:
        ...


class MeetingOffer(TerminalAction):
    classification = Classification.HIGH_QUALITY
    description = 'Personal reply from the SDR with a book-a-meeting link'

    def execute(self, lead, config, send):
        if not config.email_enabled:
            return ActionOutcome(True)
        subject, body = assemble_meeting_offer(lead, config)
        result = send(
            lead.submission.email, _full_name(config.sdr) or 'Sales', subject, body,
            test_mode_email=config.test_mode_email, reply_to=config.sdr.get('email'),
        )
        if not result.success:
            return ActionOutcome(False, error=result.error)
        return ActionOutcome(True, sent_content={'subject': subject, 'html': body})


class GenericReply(TerminalAction):
    classification = Classification.LOW_QUALITY
    description = 'Generic thank-you reply pointing at self-service resources'

    def execute(self, lead, config, send):
        if not config.email_enabled or not config.responds_to_lead(self.classification):
            return ActionOutcome(True)
        template = config.template('low-quality')
        subject, body = render_template(lead, config, 'low-quality')
        result = send(
            lead.submission.email, template.get('sender_name', 'Sales'), subject, body,
            test_mode_email=config.test_mode_email, reply_to=template.get('sender_email'),
        )
        if not result.success:
            return ActionOutcome(False, error=result.error)
        return ActionOutcome(True, sent_content={'subject': subject, 'html': body})


class _InternalForward(TerminalAction):
    """
    Forward to an internal team, then optionally acknowledge the requester.

    The forward decides success. A failed acknowledgement is only a warning,
    so retrying never forwards the same lead twice.
    """
    internal_template: str = ''
    customer_template: str = ''
    team_attr: str = ''

    def execute(self, lead, config, send):
        if not config.email_enabled:
            return ActionOutcome(True, forwarded_to=self.forwards_to)

        team = getattr(config, self.team_attr) or {}
        if not team.get('email'):
            return ActionOutcome(False, error=f'No {self.team_attr} email configured')

        subject, body = render_template(lead, config, self.internal_template)
        forwarded = send(
            team['email'], _full_name(config.sdr) or 'Sales', subject, body,
            test_mode_email=config.test_mode_email, reply_to=lead.submission.email,
        )
        if not forwarded.success:
            return ActionOutcome(False, error=forwarded.error)

        outcome = ActionOutcome(True, forwarded_to=self.forwards_to)
        if config.responds_to_lead(self.classification):
            subject, body = render_template(lead, config, self.customer_template)
            acked = send(
                lead.submission.email, team.get('name', 'Sales'), subject, body,
                test_mode_email=config.test_mode_email,
            )
            if acked.success:
                outcome.sent_content = {'subject': subject, 'html': body}
            else:
                outcome.warnings.append(f'Acknowledgement to requester failed: {acked.error}')
        return outcome


class SupportForward(_InternalForward):
    classification = Classification.SUPPORT
    description = 'Forward to the support team, acknowledge the requester'
    forwards_to = 'support'
    internal_template = 'support-internal'
    customer_template = 'support'
    team_attr = 'support_team'


class AccountTeamForward(_InternalForward):
    classification = Classification.EXISTING
    description = 'Forward to the account team, acknowledge the requester'
    forwards_to = 'account_team'
    internal_template = 'existing-internal'
    customer_template = 'existing'
    team_attr = 'account_team'


class DeadEnd(TerminalAction):
    classification = Classification.IRRELEVANT
    description = 'No delivery'

    def execute(self, lead, config, send):
        return ActionOutcome(True)


# ── Registry ──────────────────────────────────────────────────────────────────

ACTIONS: Dict[Classification, Type[TerminalAction]] = {
    cls.classification: cls
    for cls in (MeetingOffer, GenericReply, SupportForward, AccountTeamForward, DeadEnd)
}

_missing = set(Classification) - set(ACTIONS)
if _missing:
    raise RuntimeError(f"No terminal action for: {sorted(c.value for c in _missing)}")


def get_action(classification: Classification) -> TerminalAction:
    return ACTIONS[classification]()
