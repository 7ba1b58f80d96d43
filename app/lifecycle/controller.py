"""
Lead lifecycle controller — every state change a lead can go through.

    submit → classify | review → done
                 ↑                 │
                 └──── reroute ────┘

Each operation loads the lead fresh, checks the rule it enforces, and writes
through store.commit_transition() under the lead's version token. Terminal
deliveries follow a claim → send → finalize protocol: the claim is committed
(together with any new classification entry) before the side effect, ``done``
is committed only after delivery is confirmed, and a live claim makes every
other mutation fail with ConcurrencyConflict, so a retry cannot send twice.
"""
import logging
import random
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from app.config import DELIVERY_CLAIM_TTL_SECONDS, MAX_APPLY_ATTEMPTS
from app.lifecycle.actions import get_action
from app.lifecycle.aggregator import confidence_bucket
from app.lifecycle.base import (
    ActionOutcome, Author, BOT_ACTOR, BotResult, Classification, ClassificationEntry,
    Phase, RerouteSource, RoutingAction, SYSTEM_ACTOR, Submission,
    parse_classification, utcnow,
)
from app.lifecycle.errors import (
    ConcurrencyConflict, DeliveryFailed, InvalidRequest, InvalidTransition, UpstreamFailure,
)
from app.lifecycle.routing import decide, sample_ai_authority
from app.services import analytics, configurations, email_delivery, notifications, openai_client
from app.services import store as lead_store
from app.services.store import LeadRecord

logger = logging.getLogger('lifecycle.controller')

MIN_MESSAGE_LENGTH = 10
_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

REROUTE_NOTE_PREFIX = {
    RerouteSource.CUSTOMER: '[Customer Reroute]',
    RerouteSource.SUPPORT: '[Support Team Reroute]',
    RerouteSource.SALES: '[Sales Team Reroute]',
}

REROUTABLE = frozenset({Classification.SUPPORT, Classification.EXISTING})


@dataclass
class TransitionResult:
    lead: LeadRecord
    message: str
    changed: bool = True
    delivered: bool = False
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'message': self.message,
            'changed': self.changed,
            'delivered': self.delivered,
            'warnings': self.warnings,
            'lead': self.lead.to_dict(),
        }


def validate_submission(payload: Dict[str, Any]) -> Submission:
    """Build a Submission from request JSON. Raises InvalidRequest."""
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")

    values = {}
    for name in ('lead_name', 'email', 'company', 'message'):
        value = payload.get(name)
        if value is None and name == 'lead_name':
            value = payload.get('name')
        if not isinstance(value, str) or not value.strip():
            raise InvalidRequest(f"'{name}' is required")
        values[name] = value.strip()

    if not _EMAIL_RE.match(values['email']):
        raise InvalidRequest("Invalid email address")
    if len(values['message']) < MIN_MESSAGE_LENGTH:
        raise InvalidRequest(f"Message must be at least {MIN_MESSAGE_LENGTH} characters")
    return Submission(**values)


class LeadLifecycle:
    """
    The lead state machine. Collaborators default to the real services and can
    be replaced (tests, scripts):

        store        get_lead / create_lead / commit_transition
        configs      get_active_configuration
        send         email_delivery.send_email
        generate     openai_client.generate_email_body
        record_event analytics.record_event
        notifier     notify_lead_rerouted / notify_delivery_failed
        dispatch     enqueue background classification for a lead id
    """

    def __init__(self, store=None, configs=None, send=None, generate=None,
                 record_event=None, notifier=None, dispatch=None, rng=None, clock=None):
        self.store = store or lead_store
        self.configs = configs or configurations
        self.send = send or email_delivery.send_email
        self.generate = generate or openai_client.generate_email_body
        self.record_event = record_event or analytics.record_event
        self.notifier = notifier or notifications
        if dispatch is None:
            from app.lifecycle.jobs import dispatch_classification
            dispatch = dispatch_classification
        self.dispatch = dispatch
        self.rng = rng or random.random
        self.clock = clock or utcnow

    # ── Helpers ───────────────────────────────────────────────────────────

    def _config(self):
        return self.configs.get_active_configuration()

    def _claim_is_live(self, lead: LeadRecord) -> bool:
        claimed_at = lead.delivery_claimed_at
        return (claimed_at is not None
                and self.clock() - claimed_at < timedelta(seconds=DELIVERY_CLAIM_TTL_SECONDS))

    def _check_claim(self, lead: LeadRecord):
        if self._claim_is_live(lead):
            raise ConcurrencyConflict(f"Delivery already in progress for lead {lead.id}",
                                      lead_id=lead.id)
        if lead.delivery_claimed_at is not None:
            logger.warning("Lead %s has an abandoned delivery claim from %s; overriding",
                           lead.id, lead.delivery_claimed_at.isoformat(), extra={'lead_id': lead.id})

    def _load(self, lead_id: str) -> LeadRecord:
        """Fresh snapshot for a mutating operation."""
        lead = self.store.get_lead(lead_id)
        self._check_claim(lead)
        return lead

    def _entry(self, lead: LeadRecord, author: Author, classification: Classification,
               needs_review=None, applied_threshold=None) -> ClassificationEntry:
        timestamp = self.clock()
        current = lead.history.current()
        # newest entry must carry the newest timestamp even across skewed workers
        if current is not None and current.timestamp > timestamp:
            timestamp = current.timestamp
        return ClassificationEntry(author, classification, timestamp, needs_review, applied_threshold)

    def _error(self, stage: str, message: str) -> Dict[str, Any]:
        return {'stage': stage, 'message': message, 'timestamp': self.clock().isoformat()}

    def _event(self, lead: LeadRecord, event_type: str, data: Dict[str, Any]):
        self.record_event(lead.id, event_type, data, configuration_id=lead.configuration_id)

    def _actor(self, config, name: Optional[str]) -> str:
        return name or (config.sdr or {}).get('name') or SYSTEM_ACTOR

    def _generate_draft(self, lead: LeadRecord, config):
        """(draft, error) — exactly one is None."""
        try:
            body = self.generate(
                lead.submission, prompt=config.prompts.get('email'),
                bot_research=lead.bot_research, lead_id=lead.id,
            )
        except UpstreamFailure as e:
            logger.warning("Draft generation failed for lead %s: %s", lead.id, e.message,
                           extra={'lead_id': lead.id})
            return None, self._error('email_generation', e.message)
        now = self.clock().isoformat()
        return {'text': body, 'created_at': now, 'edited_at': None, 'last_edited_by': None}, None

    def _comparison(self, lead: LeadRecord, human: Classification) -> Optional[Dict[str, Any]]:
        """Human-vs-bot comparison for the first human decision on a lead."""
        if lead.history.has_human_entry():
            return None
        current = lead.history.current()
        research = lead.bot_research or {}
        if current is not None and current.author is Author.BOT:
            ai = current.classification
            comparison_type = 'override'
        elif research.get('classification'):
            ai = parse_classification(research['classification'])
            comparison_type = 'blind'
        else:
            return None
        confidence = research.get('confidence')
        return {
            'ai_classification': ai.value,
            'ai_confidence': confidence,
            'human_classification': human.value,
            'agreement': ai is human,
            'confidence_bucket': confidence_bucket(confidence),
            'comparison_type': comparison_type,
        }

    # ── Terminal delivery ────────────────────────────────────────────────

    def _claim(self, lead: LeadRecord, new_entry: Optional[ClassificationEntry] = None,
               changes: Optional[Dict[str, Any]] = None) -> LeadRecord:
        values = dict(changes or {})
        values['delivery_claimed_at'] = self.clock()
        return self.store.commit_transition(lead, values, new_entry)

    def _commit_held(self, claimed: LeadRecord, changes: Dict[str, Any]) -> LeadRecord:
        """
        Commit for a lead whose delivery claim this call holds.

        The side effect has already happened, so losing the version check to a
        concurrent write reloads the lead and applies the same changes again.
        """
        lead = claimed
        for attempt in range(1, MAX_APPLY_ATTEMPTS + 1):
            try:
                return self.store.commit_transition(lead, changes)
            except ConcurrencyConflict as e:
                if attempt == MAX_APPLY_ATTEMPTS:
                    logger.error("Lead %s could not record its delivery outcome: %s",
                                 claimed.id, e.message, extra={'lead_id': claimed.id})
                    raise
                logger.warning("Lead %s changed during delivery; reapplying outcome (%d/%d)",
                               claimed.id, attempt, MAX_APPLY_ATTEMPTS,
                               extra={'lead_id': claimed.id})
                lead = self.store.get_lead(claimed.id)

    def _release(self, lead: LeadRecord, stage: str, message: str) -> LeadRecord:
        return self._commit_held(
            lead, {'delivery_claimed_at': None, 'last_error': self._error(stage, message)},
        )

    def _complete(self, claimed: LeadRecord, classification: Classification, actor: str, config):
        """Run the terminal action for a claimed lead; (done lead, outcome) or DeliveryFailed."""
        action = get_action(classification)
        try:
            outcome: ActionOutcome = action.execute(claimed, config, self.send)
        except Exception:
            logger.error("Terminal action %s crashed for lead %s", type(action).__name__,
                         claimed.id, exc_info=True, extra={'lead_id': claimed.id})
            self._release(claimed, 'delivery', f'{type(action).__name__} crashed')
            raise

        if not outcome.success:
            failed = self._release(claimed, 'delivery', outcome.error or 'unknown error')
            self.notifier.notify_delivery_failed(failed, 'delivery', outcome.error)
            logger.warning("Delivery failed for lead %s (%s): %s", claimed.id,
                           classification.value, outcome.error, extra={'lead_id': claimed.id})
            raise DeliveryFailed(f"Failed to send email: {outcome.error}",
                                 lead_id=claimed.id, service='resend')

        done = self._commit_held(claimed, {
            'phase': Phase.DONE,
            'sent_at': self.clock(),
            'sent_by': actor,
            'sent_email': outcome.sent_content,
            'delivery_claimed_at': None,
            'last_error': None,
        })
        for warning in outcome.warnings:
            logger.warning("Lead %s: %s", done.id, warning, extra={'lead_id': done.id})
        if outcome.forwarded_to:
            self._event(done, 'lead_forwarded', {
                'destination': outcome.forwarded_to,
                'classification': classification.value,
                'forwarded_by': actor,
            })
        logger.info("Lead %s closed as %s by %s", done.id, done.terminal_state.value, actor,
                    extra={'lead_id': done.id, 'phase': 'done'})
        return done, outcome

    # ── Operations ───────────────────────────────────────────────────────

    def submit(self, payload, metadata: Optional[Dict[str, Any]] = None) -> TransitionResult:
        """Capture an inquiry and hand it to background classification."""
        submission = payload if isinstance(payload, Submission) else validate_submission(payload)
        config = self._config()
        ai_authoritative = sample_ai_authority(config, self.rng)
        phase = Phase.REVIEW if ai_authoritative else Phase.CLASSIFY

        lead = self.store.create_lead(
            submission, phase, self.clock(), ai_authoritative=ai_authoritative,
            configuration_id=config.id, metadata=metadata,
        )

        try:
            self.dispatch(lead.id)
        except Exception as e:
            logger.error("Could not enqueue classification for lead %s: %s", lead.id, e,
                         extra={'lead_id': lead.id})
            lead = self.record_upstream_failure(lead.id, 'dispatch', str(e),
                                                fallback_phase=Phase.CLASSIFY).lead
            return TransitionResult(lead, 'Lead received; queued for a human',
                                    warnings=[f'Classification not queued: {e}'])

        return TransitionResult(lead, 'Lead received')

    def auto_classify(self, lead_id: str, result: BotResult) -> TransitionResult:
        """Apply a background classification result, re-validating the lead first."""
        lead = self.store.get_lead(lead_id)

        if lead.phase is Phase.DONE:
            logger.info("Dropping stale classification for closed lead %s", lead_id,
                        extra={'lead_id': lead_id})
            return TransitionResult(lead, 'Lead already closed; result ignored', changed=False)
        if lead.history.bot_entry() is not None:
            return TransitionResult(lead, 'Lead already has a bot classification', changed=False)

        self._check_claim(lead)
        config = self._config()
        research = result.to_research(self.clock())

        # Reviewer got there first, or the bot is not authoritative for this lead
        if lead.history.has_human_entry() or not lead.ai_authoritative:
            changes = {'bot_research': research}
            warnings = []
            if (result.classification is Classification.HIGH_QUALITY
                    and not lead.history.has_human_entry() and not lead.draft):
                draft, error = self._generate_draft(lead, config)
                if draft:
                    changes['draft'] = draft
                else:
                    changes['last_error'] = error
                    warnings.append(error['message'])
            updated = self.store.commit_transition(lead, changes)

            current = lead.history.current()
            if current is not None and current.author is Author.HUMAN:
                self._event(updated, 'human_ai_comparison', {
                    'ai_classification': result.classification.value,
                    'ai_confidence': result.confidence,
                    'human_classification': current.classification.value,
                    'agreement': result.classification is current.classification,
                    'confidence_bucket': confidence_bucket(result.confidence),
                    'comparison_type': 'blind',
                })
            return TransitionResult(updated, 'Classification stored for comparison',
                                    warnings=warnings)

        decision = decide(result.classification, result.confidence, config)
        entry = self._entry(lead, Author.BOT, result.classification,
                            decision.needs_review, decision.applied_threshold)
        event_data = {
            'author': Author.BOT.value,
            'classification': result.classification.value,
            'confidence': result.confidence,
            'needs_review': decision.needs_review,
            'applied_threshold': decision.applied_threshold,
            'action': decision.action.value,
        }

        if decision.action is RoutingAction.AUTO_SEND:
            claimed = self._claim(lead, entry, {'bot_research': research})
            self._event(claimed, 'classified', event_data)
            done, outcome = self._complete(claimed, result.classification, BOT_ACTOR, config)
            return TransitionResult(done, 'Auto-sent', delivered=outcome.sent_content is not None,
                                    warnings=outcome.warnings)

        changes = {'bot_research': research, 'phase': Phase.REVIEW}
        warnings = []
        generated = False
        if result.classification is Classification.HIGH_QUALITY and not lead.draft:
            draft, error = self._generate_draft(lead, config)
            if draft:
                changes['draft'] = draft
                generated = True
            else:
                changes['last_error'] = error
                warnings.append(error['message'])

        updated = self.store.commit_transition(lead, changes, entry)
        self._event(updated, 'classified', event_data)
        if generated:
            self._event(updated, 'email_generated', {'author': Author.BOT.value})
        return TransitionResult(updated, 'Queued for review', warnings=warnings)

    def human_classify(self, lead_id: str, classification, reviewer: Optional[str] = None) -> TransitionResult:
        return self._classify_by_human(lead_id, classification, reviewer, reclassify=False)

    def reclassify(self, lead_id: str, classification, reviewer: Optional[str] = None) -> TransitionResult:
        return self._classify_by_human(lead_id, classification, reviewer, reclassify=True)

    def _classify_by_human(self, lead_id, classification, reviewer, reclassify):
        try:
            classification = parse_classification(classification)
        except ValueError:
            raise InvalidRequest(f"Unknown classification: {classification!r}", lead_id=lead_id)

        lead = self._load(lead_id)
        if lead.phase is Phase.DONE:
            raise InvalidTransition("Lead is closed; reroute it before classifying again",
                                    lead_id=lead_id)

        config = self._config()
        actor = self._actor(config, reviewer)
        previous = lead.history.current_classification()
        comparison = self._comparison(lead, classification)
        entry = self._entry(lead, Author.HUMAN, classification)

        def log_decision(target):
            self._event(target, 'classified', {
                'author': Author.HUMAN.value,
                'classification': classification.value,
                'classified_by': actor,
            })
            if comparison:
                self._event(target, 'human_ai_comparison', comparison)
            if reclassify and previous is not None:
                self._event(target, 'reclassified', {
                    'old_classification': previous.value,
                    'new_classification': classification.value,
                    'reclassified_by': actor,
                })

        if classification is Classification.HIGH_QUALITY:
            changes = {'phase': Phase.REVIEW}
            warnings = []
            generated = False
            if not (lead.draft or {}).get('text'):
                draft, error = self._generate_draft(lead, config)
                if draft:
                    changes['draft'] = draft
                    generated = True
                else:
                    # classification still stands; the reviewer can write the draft
                    changes['last_error'] = error
                    warnings.append(error['message'])
            updated = self.store.commit_transition(lead, changes, entry)
            log_decision(updated)
            if generated:
                self._event(updated, 'email_generated', {'author': Author.BOT.value})
            return TransitionResult(updated, 'Queued for review with a draft', warnings=warnings)

        claimed = self._claim(lead, entry)
        log_decision(claimed)
        done, outcome = self._complete(claimed, classification, actor, config)
        return TransitionResult(done, 'Lead closed', delivered=outcome.sent_content is not None,
                                warnings=outcome.warnings)

    def approve(self, lead_id: str, approver: Optional[str] = None) -> TransitionResult:
        """Send the reviewed outcome for a lead in review."""
        lead = self._load(lead_id)
        if lead.phase is not Phase.REVIEW:
            raise InvalidTransition(f"Only leads in review can be approved (phase is {lead.phase.value})",
                                    lead_id=lead_id)
        classification = lead.current_classification
        if classification is None:
            raise InvalidTransition("Lead has no classification to approve", lead_id=lead_id)
        if classification is Classification.HIGH_QUALITY and not (lead.draft or {}).get('text'):
            raise InvalidTransition("No draft email to send", lead_id=lead_id)

        config = self._config()
        actor = self._actor(config, approver)
        claimed = self._claim(lead)
        done, outcome = self._complete(claimed, classification, actor, config)

        elapsed_ms = (done.sent_at - done.received_at).total_seconds() * 1000
        self._event(done, 'email_approved', {
            'classification': classification.value,
            'approved_by': actor,
            'time_to_approval_ms': round(elapsed_ms),
            'time_to_approval_minutes': round(elapsed_ms / 60000, 1),
        })
        return TransitionResult(done, 'Email approved and sent',
                                delivered=outcome.sent_content is not None,
                                warnings=outcome.warnings)

    def edit(self, lead_id: str, body: str, edit_note: Optional[str] = None,
             editor: Optional[str] = None) -> TransitionResult:
        """Replace the draft body of a lead in review."""
        if not isinstance(body, str) or not body.strip():
            raise InvalidRequest("email_text is required", lead_id=lead_id)

        lead = self._load(lead_id)
        if lead.phase is not Phase.REVIEW:
            raise InvalidTransition(f"Only leads in review can be edited (phase is {lead.phase.value})",
                                    lead_id=lead_id)

        existing = lead.draft or {}
        original = existing.get('text') or ''
        now = self.clock().isoformat()
        changes = {'draft': {
            'text': body,
            'created_at': existing.get('created_at') or now,
            'edited_at': now,
            'last_edited_by': editor,
        }}
        if edit_note is not None:
            changes['edit_note'] = edit_note

        updated = self.store.commit_transition(lead, changes)

        delta = abs(len(body) - len(original))
        self._event(updated, 'email_edited', {
            'original_length': len(original),
            'edited_length': len(body),
            'edit_percentage': round(delta / len(original) * 100, 2) if original else 100.0,
            'edited_by': editor,
            'has_note': bool(edit_note),
        })
        return TransitionResult(updated, 'Draft updated')

    def reroute(self, lead_id: str, source, reason: Optional[str] = None) -> TransitionResult:
        """Reopen a forwarded lead that the recipient or requester disputes."""
        try:
            source = RerouteSource(source)
        except ValueError:
            raise InvalidRequest(f"Unknown reroute source: {source!r}", lead_id=lead_id)
        reason = (reason or '').strip()
        if source is RerouteSource.CUSTOMER and not reason:
            raise InvalidRequest("A reason is required for customer reroutes", lead_id=lead_id)

        lead = self._load(lead_id)
        current = lead.current_classification
        if current not in REROUTABLE:
            raise InvalidTransition("Only support or existing-customer leads can be rerouted",
                                    lead_id=lead_id)
        if lead.reroute:
            raise InvalidTransition("Lead has already been rerouted", lead_id=lead_id)
        if lead.phase is not Phase.DONE:
            raise InvalidTransition("Only closed leads can be rerouted", lead_id=lead_id)

        previous_state = lead.terminal_state
        new_phase = Phase.REVIEW if source is RerouteSource.CUSTOMER else Phase.CLASSIFY
        prefix = REROUTE_NOTE_PREFIX[source]
        reroute = {
            'source': source.value,
            'reason': reason or None,
            'original_classification': current.value,
            'previous_terminal_state': previous_state.value if previous_state else None,
            'timestamp': self.clock().isoformat(),
        }
        updated = self.store.commit_transition(lead, {
            'phase': new_phase,
            'sent_at': None,
            'sent_by': None,
            'reroute': reroute,
            'edit_note': f"{prefix} {reason or 'No additional context provided'}",
        })

        self._event(updated, 'lead_rerouted', {
            'source': source.value,
            'original_classification': current.value,
            'previous_terminal_state': reroute['previous_terminal_state'],
            'new_phase': new_phase.value,
        })
        self.notifier.notify_lead_rerouted(updated)
        logger.info("Lead %s rerouted by %s back to %s", lead_id, source.value, new_phase.value,
                    extra={'lead_id': lead_id, 'phase': new_phase.value})
        return TransitionResult(updated, f'Lead rerouted to {new_phase.value}')

    def mark_self_service(self, lead_id: str) -> TransitionResult:
        """Support says the requester can help themselves; no reopen."""
        lead = self._load(lead_id)
        if lead.current_classification is not Classification.SUPPORT:
            raise InvalidTransition("Only support leads can be marked self-service", lead_id=lead_id)
        if (lead.support_feedback or {}).get('marked_self_service'):
            raise InvalidTransition("Lead is already marked self-service", lead_id=lead_id)

        updated = self.store.commit_transition(lead, {'support_feedback': {
            'marked_self_service': True,
            'timestamp': self.clock().isoformat(),
        }})
        return TransitionResult(updated, 'Marked as self-service')

    def book_meeting(self, lead_id: str) -> TransitionResult:
        """Record that the requester booked a meeting; repeat calls are no-ops."""
        lead = self.store.get_lead(lead_id)
        if lead.meeting_booked_at is not None:
            return TransitionResult(lead, 'Meeting already booked', changed=False)
        if lead.phase is not Phase.DONE or not lead.sent_email:
            raise InvalidTransition("A meeting can only be booked after the email was sent",
                                    lead_id=lead_id)

        booked_at = self.clock()
        try:
            updated = self.store.commit_transition(lead, {'meeting_booked_at': booked_at})
        except ConcurrencyConflict:
            fresh = self.store.get_lead(lead_id)
            if fresh.meeting_booked_at is not None:
                return TransitionResult(fresh, 'Meeting already booked', changed=False)
            raise

        elapsed_ms = (booked_at - lead.sent_at).total_seconds() * 1000 if lead.sent_at else 0
        self._event(updated, 'meeting_booked', {
            'time_to_booking_ms': round(elapsed_ms),
            'time_to_booking_minutes': round(elapsed_ms / 60000, 1),
            'time_to_booking_hours': round(elapsed_ms / 3600000, 2),
        })
        return TransitionResult(updated, 'Meeting booked')

    def set_case_studies(self, lead_id: str, case_studies: List[Dict[str, Any]],
                         editor: Optional[str] = None) -> TransitionResult:
        """Replace the matched case studies, noting what changed."""
        if not isinstance(case_studies, list) or not all(
                isinstance(cs, dict) and cs.get('case_study_id') and cs.get('company')
                for cs in case_studies):
            raise InvalidRequest("case_studies must be a list of objects with case_study_id and company",
                                 lead_id=lead_id)

        lead = self._load(lead_id)
        if lead.phase is Phase.DONE:
            raise InvalidTransition("Case studies cannot change after the email was sent",
                                    lead_id=lead_id)

        old = lead.matched_case_studies or []
        old_ids = [cs.get('case_study_id') for cs in old]
        new_ids = [cs['case_study_id'] for cs in case_studies]
        added = [cs['company'] for cs in case_studies if cs['case_study_id'] not in old_ids]
        removed = [cs.get('company', '') for cs in old if cs.get('case_study_id') not in new_ids]

        parts = []
        if added:
            parts.append(f"Added: {', '.join(added)}.")
        if removed:
            parts.append(f"Removed: {', '.join(removed)}.")
        if not added and not removed and old_ids != new_ids:
            parts.append('Reordered case studies.')

        changes = {'matched_case_studies': case_studies}
        if parts:
            line = '[Case Studies] ' + ' '.join(parts)
            if editor:
                line += f' ({editor})'
            changes['edit_note'] = f"{lead.edit_note}\n{line}" if lead.edit_note else line

        updated = self.store.commit_transition(lead, changes)
        return TransitionResult(updated, ' '.join(parts) or 'No changes', changed=bool(parts))

    def record_upstream_failure(self, lead_id: str, stage: str, message: str,
                                fallback_phase: Optional[Phase] = None) -> TransitionResult:
        """Attach an upstream error; an unclassified lead can fall back to a human."""
        lead = self.store.get_lead(lead_id)
        if self._claim_is_live(lead):
            # the delivery outcome decides the lead's state
            logger.warning("Lead %s %s failure not recorded, delivery in progress: %s",
                           lead_id, stage, message, extra={'lead_id': lead_id})
            return TransitionResult(lead, f'{stage} failed; delivery in progress', changed=False)
        changes = {'last_error': self._error(stage, message)}
        if fallback_phase is not None and lead.phase is not Phase.DONE and not len(lead.history):
            changes['phase'] = fallback_phase
        updated = self.store.commit_transition(lead, changes)
        logger.warning("Lead %s %s failure: %s", lead_id, stage, message,
                       extra={'lead_id': lead_id, 'phase': updated.phase.value})
        return TransitionResult(updated, f'{stage} failed')


# ── Default instance ──────────────────────────────────────────────────────────

_lifecycle = None


def get_lifecycle() -> LeadLifecycle:
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = LeadLifecycle()
    return _lifecycle
