"""Tests for the leads blueprint — /api/leads endpoints."""
import pytest
from unittest.mock import patch, MagicMock

from app.lifecycle.base import BotResult, Classification, DeliveryResult


@pytest.fixture
def lifecycle(active_config, make_lifecycle):
    active_config()
    lc = make_lifecycle()
    with patch('app.routes.leads.get_lifecycle', return_value=lc):
        yield lc


@pytest.fixture
def lead_id(client, lifecycle, submission_payload):
    resp = client.post('/api/leads', json=submission_payload)
    return resp.get_json()['lead']['id']


def _close_as_support(lifecycle, lead_id):
    lifecycle.auto_classify(lead_id, BotResult(Classification.SUPPORT, 0.95))


# ---------------------------------------------------------------------------
# Intake and reads
# ---------------------------------------------------------------------------

class TestSubmit:

    def test_creates_lead(self, client, lifecycle, submission_payload):
        resp = client.post('/api/leads', json=dict(submission_payload, metadata={'test': True}))

        assert resp.status_code == 201
        data = resp.get_json()
        assert data['success'] is True
        assert data['lead']['status']['phase'] == 'review'
        assert data['lead']['metadata'] == {'test': True}
        lifecycle.dispatch.assert_called_once_with(data['lead']['id'])

    def test_validation_error(self, client, lifecycle):
        resp = client.post('/api/leads', json={'lead_name': 'Ada'})
        assert resp.status_code == 400
        assert resp.get_json()['kind'] == 'invalid_request'

    def test_non_json_body(self, client, lifecycle):
        resp = client.post('/api/leads', data='hello', content_type='text/plain')
        assert resp.status_code == 400


class TestRead:

    def test_get_lead(self, client, lead_id):
        resp = client.get(f'/api/leads/{lead_id}')
        assert resp.status_code == 200
        assert resp.get_json()['submission']['company'] == 'Analytical Engines'

    def test_get_missing_lead(self, client, lifecycle):
        resp = client.get('/api/leads/nope')
        assert resp.status_code == 404
        assert resp.get_json()['kind'] == 'not_found'

    def test_list_by_phase(self, client, lead_id):
        assert client.get('/api/leads?phase=review').get_json()['count'] == 1
        assert client.get('/api/leads?phase=done').get_json()['count'] == 0

    def test_list_bad_phase(self, client, lifecycle):
        assert client.get('/api/leads?phase=archived').status_code == 400


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

class TestReviewEndpoints:

    def test_classify(self, client, lead_id):
        resp = client.post(f'/api/leads/{lead_id}/classify',
                           json={'classification': 'irrelevant', 'reviewer': 'Jordan'})
        assert resp.status_code == 200
        assert resp.get_json()['lead']['terminal_state'] == 'dead'

    def test_classify_unknown_value(self, client, lead_id):
        resp = client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'maybe'})
        assert resp.status_code == 400

    def test_reclassify_closed_lead(self, client, lead_id):
        client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'irrelevant'})
        resp = client.post(f'/api/leads/{lead_id}/review/reclassify', json={'classification': 'support'})
        assert resp.status_code == 400
        assert resp.get_json()['kind'] == 'invalid_transition'

    def test_edit_then_approve(self, client, lead_id, send):
        client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'high-quality'})

        resp = client.patch(f'/api/leads/{lead_id}/review/edit',
                            json={'email_text': '<p>Edited</p>', 'edit_note': 'shorter'})
        assert resp.status_code == 200
        assert resp.get_json()['lead']['draft']['text'] == '<p>Edited</p>'

        resp = client.post(f'/api/leads/{lead_id}/review/approve', json={'approver': 'Jordan'})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['delivered'] is True
        assert data['lead']['terminal_state'] == 'sent_meeting_offer'
        assert '<p>Edited</p>' in send.call_args.args[3]

    def test_approve_delivery_failure(self, client, lifecycle, lead_id):
        client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'high-quality'})
        lifecycle.send = MagicMock(return_value=DeliveryResult(False, 'x', error='resend 500'))

        resp = client.post(f'/api/leads/{lead_id}/review/approve')
        assert resp.status_code == 502
        assert 'resend 500' in resp.get_json()['error']

    def test_live_claim_conflicts(self, client, lifecycle, lead_id):
        from app.services import store
        client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'high-quality'})
        store.commit_transition(store.get_lead(lead_id), {'delivery_claimed_at': lifecycle.clock()})

        resp = client.post(f'/api/leads/{lead_id}/review/approve')
        assert resp.status_code == 409

    def test_case_studies(self, client, lead_id):
        client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'high-quality'})
        resp = client.put(f'/api/leads/{lead_id}/case-studies',
                          json={'case_studies': [{'case_study_id': 'cs-1', 'company': 'Acme'}]})
        assert resp.status_code == 200
        assert resp.get_json()['lead']['edit_note'] == '[Case Studies] Added: Acme.'


# ---------------------------------------------------------------------------
# Links from outbound emails
# ---------------------------------------------------------------------------

class TestFeedback:

    def test_customer_reroute(self, client, lifecycle, lead_id):
        _close_as_support(lifecycle, lead_id)
        resp = client.post(f'/api/leads/{lead_id}/feedback',
                           json={'source': 'customer', 'reason': 'I want a demo'})
        assert resp.status_code == 200
        assert resp.get_json()['lead']['status']['phase'] == 'review'

    def test_customer_reroute_needs_reason(self, client, lifecycle, lead_id):
        _close_as_support(lifecycle, lead_id)
        resp = client.post(f'/api/leads/{lead_id}/feedback', json={'source': 'customer'})
        assert resp.status_code == 400

    def test_self_service(self, client, lifecycle, lead_id):
        _close_as_support(lifecycle, lead_id)
        resp = client.post(f'/api/leads/{lead_id}/feedback',
                           json={'source': 'support', 'self_service': True})
        assert resp.status_code == 200
        assert resp.get_json()['lead']['support_feedback']['marked_self_service'] is True

    def test_self_service_only_from_support(self, client, lifecycle, lead_id):
        _close_as_support(lifecycle, lead_id)
        resp = client.post(f'/api/leads/{lead_id}/feedback',
                           json={'source': 'customer', 'self_service': True})
        assert resp.status_code == 400


class TestBookMeeting:

    def test_book_meeting_idempotent(self, client, lead_id):
        client.post(f'/api/leads/{lead_id}/classify', json={'classification': 'high-quality'})
        client.post(f'/api/leads/{lead_id}/review/approve')

        first = client.post(f'/api/leads/{lead_id}/book-meeting')
        second = client.post(f'/api/leads/{lead_id}/book-meeting')
        assert first.status_code == 200
        assert first.get_json()['changed'] is True
        assert second.status_code == 200
        assert second.get_json()['message'] == 'Meeting already booked'

    def test_before_send(self, client, lead_id):
        resp = client.post(f'/api/leads/{lead_id}/book-meeting')
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestApiToken:

    @pytest.fixture
    def secured(self, mock_redis):
        from app import create_app
        with patch('app.config.API_TOKEN', 's3cret'):
            app = create_app()
        app.config['TESTING'] = True
        with app.test_client() as c:
            yield c

    def test_internal_endpoint_requires_token(self, secured, lifecycle):
        assert secured.get('/api/leads').status_code == 401
        resp = secured.get('/api/leads', headers={'Authorization': 'Bearer s3cret'})
        assert resp.status_code == 200

    def test_public_endpoints_open(self, secured, lifecycle, submission_payload):
        resp = secured.post('/api/leads', json=submission_payload)
        assert resp.status_code == 201
        lead_id = resp.get_json()['lead']['id']
        assert secured.post(f'/api/leads/{lead_id}/book-meeting').status_code == 400
        assert secured.get('/health').status_code == 200

    def test_wrong_token(self, secured, lifecycle):
        resp = secured.get('/api/configurations', headers={'Authorization': 'Bearer nope'})
        assert resp.status_code == 401
