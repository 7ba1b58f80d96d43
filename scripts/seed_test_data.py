#!/usr/bin/env python3
"""
Seed test data for exercising the API and analytics locally.

Creates the baseline configuration (if none is active) and leads covering the
main lifecycle paths, driven through LeadLifecycle with email delivery, drafting
and the RQ queue stubbed out:
  1. Confident support inquiry, auto-forwarded by the bot
  2. High-quality lead waiting in review with a draft
  3. High-quality lead approved and sent, meeting booked
  4. Bot said support, reviewer overrode to existing customer
  5. Support forward rerouted by the customer
  6. Lead outside the rollout, waiting for a human

Usage:
    python scripts/seed_test_data.py          # seed all scenarios
    python scripts/seed_test_data.py --clear  # wipe seeded data first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.database import get_session, engine, Base
from app.lifecycle.base import BotResult, Classification, DeliveryResult, Submission, utcnow
from app.lifecycle.controller import LeadLifecycle
from app.models.analytics_event import AnalyticsEvent
from app.models.classification_entry import ClassificationRecord
from app.models.lead import Lead
from app.services.configurations import ensure_default_configuration


SEED_MARKER = {'seeded': True}

INQUIRIES = [
    Submission('Priya Raman', 'priya@northwind.io', 'Northwind',
               'Our production deploys started failing after we enabled the edge config.'),
    Submission('Marcus Webb', 'marcus@contoso.com', 'Contoso',
               'We run 120 storefronts on Next.js and want to consolidate hosting this quarter.'),
    Submission('Elena Petrova', 'elena@fabrikam.com', 'Fabrikam',
               'Looking for an enterprise plan for 60 engineers, SSO and audit logs required.'),
    Submission('Tom Okafor', 'tom@adventure-works.com', 'Adventure Works',
               'Can someone on our account help us raise the bandwidth limit for March?'),
    Submission('Sara Lind', 'sara@litware.se', 'Litware',
               'Where do I find the build logs for a preview deployment? Thanks.'),
    Submission('Kenji Mori', 'kenji@tailspin.jp', 'Tailspin',
               'Interested in a demo of your platform for our agency clients.'),
]


# ── Stubs ────────────────────────────────────────────────────────────────────

class SeedClock:
    """Moves forward a few minutes per call so durations look realistic."""

    def __init__(self):
        self.now = utcnow() - timedelta(days=2)

    def __call__(self):
        self.now += timedelta(minutes=7)
        return self.now


def _send(to, from_name, subject, html, test_mode_email=None, reply_to=None):
    return DeliveryResult(True, test_mode_email or to, bool(test_mode_email), message_id='seed')


def _generate(submission, prompt=None, bot_research=None, lead_id=None):
    return (f'<p>Thanks for the detail on what {submission.company} is building.</p>'
            '<p>A short call would help us point you to the right setup.</p>')


def _lifecycle(rng=lambda: 0.0):
    return LeadLifecycle(send=_send, generate=_generate, dispatch=lambda lead_id: None,
                         rng=rng, clock=SeedClock())


# ── Scenarios ────────────────────────────────────────────────────────────────

def seed_leads():
    lc = _lifecycle()

    lead = lc.submit(INQUIRIES[0], metadata=SEED_MARKER).lead
    lc.auto_classify(lead.id, BotResult(Classification.SUPPORT, 0.96, 'Deployment issue'))
    print(f'  [1] Auto-forwarded:  {lead.id}')

    lead = lc.submit(INQUIRIES[1], metadata=SEED_MARKER).lead
    lc.auto_classify(lead.id, BotResult(Classification.HIGH_QUALITY, 0.91, 'Large migration'))
    print(f'  [2] In review:       {lead.id}')

    lead = lc.submit(INQUIRIES[2], metadata=SEED_MARKER).lead
    lc.auto_classify(lead.id, BotResult(Classification.HIGH_QUALITY, 0.88, 'Enterprise need'))
    lc.approve(lead.id)
    lc.book_meeting(lead.id)
    print(f'  [3] Meeting booked:  {lead.id}')

    lead = lc.submit(INQUIRIES[3], metadata=SEED_MARKER).lead
    lc.auto_classify(lead.id, BotResult(Classification.SUPPORT, 0.72, 'Limit request'))
    lc.human_classify(lead.id, 'existing', reviewer='Seed Reviewer')
    print(f'  [4] Overridden:      {lead.id}')

    lead = lc.submit(INQUIRIES[4], metadata=SEED_MARKER).lead
    lc.auto_classify(lead.id, BotResult(Classification.SUPPORT, 0.97, 'How-to question'))
    lc.reroute(lead.id, 'customer', reason='I actually want to talk about pricing')
    print(f'  [5] Rerouted:        {lead.id}')

    lead = _lifecycle(rng=lambda: 1.0).submit(INQUIRIES[5], metadata=SEED_MARKER).lead
    print(f'  [6] Awaiting human:  {lead.id}')


def clear_seeded_data(session):
    """Delete every lead created by this script, with its history and events."""
    seeded = [row.id for row in session.query(Lead).all()
              if (row.test_metadata or {}).get('seeded')]
    if seeded:
        session.query(ClassificationRecord).filter(
            ClassificationRecord.lead_id.in_(seeded)).delete(synchronize_session=False)
        session.query(AnalyticsEvent).filter(
            AnalyticsEvent.lead_id.in_(seeded)).delete(synchronize_session=False)
        session.query(Lead).filter(Lead.id.in_(seeded)).delete(synchronize_session=False)
    session.commit()
    print(f'Cleared {len(seeded)} seeded leads.')


def main():
    parser = argparse.ArgumentParser(description='Seed lifecycle test data')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before (or instead of) seeding')
    parser.add_argument('--clear-only', action='store_true', help='Only clear, do not re-seed')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)

        if args.clear or args.clear_only:
            session = get_session()
            try:
                clear_seeded_data(session)
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()
            if args.clear_only:
                return

        config = ensure_default_configuration()
        print(f'Active configuration: {config.name} ({config.id})')
        print('Seeding leads...')
        seed_leads()
        print('\nDone! GET http://localhost:5000/api/leads to inspect.')


if __name__ == '__main__':
    main()
