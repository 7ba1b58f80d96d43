"""Tests for app.services.notifications — Slack alerts."""
from datetime import datetime

import pytest
from unittest.mock import patch

from app.lifecycle.base import Phase, Submission
from app.lifecycle.history import ClassificationHistory
from app.services import notifications
from app.services.store import LeadRecord


@pytest.fixture
def lead():
    return LeadRecord(
        id='abcdef123456',
        submission=Submission('Ada Lovelace', 'ada@x.io', 'Analytical', 'Not support at all'),
        phase=Phase.REVIEW,
        received_at=datetime(2026, 3, 2, 9, 0),
        history=ClassificationHistory(),
        reroute={'source': 'customer', 'reason': 'I want pricing', 'original_classification': 'support'},
    )


@pytest.fixture
def webhook():
    with patch('app.services.notifications.SLACK_WEBHOOK_URL', 'https://hooks.slack.test/x'):
        yield


class TestNotifyLeadRerouted:

    def test_posts_blocks(self, lead, webhook):
        with patch('app.services.notifications.requests.post') as post:
            notifications.notify_lead_rerouted(lead)

        blocks = post.call_args.kwargs['json']['blocks']
        assert 'customer' in blocks[0]['text']['text']
        assert any('I want pricing' in b.get('text', {}).get('text', '') for b in blocks[1:])

    def test_no_webhook_configured(self, lead):
        with patch('app.services.notifications.SLACK_WEBHOOK_URL', None), \
                patch('app.services.notifications.requests.post') as post:
            notifications.notify_lead_rerouted(lead)
        post.assert_not_called()

    def test_post_failure_swallowed(self, lead, webhook):
        with patch('app.services.notifications.requests.post', side_effect=ConnectionError('slack down')):
            notifications.notify_lead_rerouted(lead)


class TestNotifyDeliveryFailed:

    def test_posts_error(self, lead, webhook):
        with patch('app.services.notifications.requests.post') as post:
            notifications.notify_delivery_failed(lead, 'delivery', 'resend 500')

        blocks = post.call_args.kwargs['json']['blocks']
        assert 'FAILED' in blocks[0]['text']['text']
        assert 'resend 500' in blocks[2]['text']['text']
