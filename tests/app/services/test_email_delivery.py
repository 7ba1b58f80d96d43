"""Tests for app.services.email_delivery — Resend client and test-mode redirect."""
import pytest
import requests
from unittest.mock import patch, MagicMock

from app.services import email_delivery
from app.services.circuit_breaker import CircuitOpenError


@pytest.fixture
def breaker():
    """Pass-through breaker so calls reach the patched requests.post."""
    cb = MagicMock()
    cb.call.side_effect = lambda func, *args, **kwargs: func(*args, **kwargs)
    with patch('app.services.email_delivery.get_breaker', return_value=cb):
        yield cb


@pytest.fixture
def api_key():
    with patch('app.services.email_delivery.RESEND_API_KEY', 're_test_key'):
        yield


@pytest.fixture
def mock_post(breaker, api_key):
    response = MagicMock()
    response.json.return_value = {'id': 'msg-123'}
    response.raise_for_status.return_value = None
    with patch('app.services.email_delivery.requests.post', return_value=response) as post:
        yield post


class TestSendEmail:

    def test_sends_payload(self, mock_post):
        result = email_delivery.send_email('ada@x.io', 'Ryan Hemelt', 'Hello', '<p>Hi</p>',
                                           reply_to='ryan@vercel.com')

        assert result.success
        assert result.message_id == 'msg-123'
        assert result.actual_recipient == 'ada@x.io'
        assert result.test_mode is False
        payload = mock_post.call_args.kwargs['json']
        assert payload['to'] == ['ada@x.io']
        assert payload['from'].startswith('Ryan Hemelt <')
        assert payload['reply_to'] == 'ryan@vercel.com'
        assert mock_post.call_args.kwargs['headers']['Authorization'] == 'Bearer re_test_key'

    def test_test_mode_redirects(self, mock_post):
        result = email_delivery.send_email('ada@x.io', 'Sales', 'Hello', '<p>Hi</p>',
                                           test_mode_email='qa@x.io')

        assert result.actual_recipient == 'qa@x.io'
        assert result.test_mode is True
        payload = mock_post.call_args.kwargs['json']
        assert payload['to'] == ['qa@x.io']
        assert payload['subject'] == '[TEST] Hello'
        assert 'Original recipient: ada@x.io' in payload['html']
        assert 'reply_to' not in payload

    def test_missing_api_key(self, breaker):
        with patch('app.services.email_delivery.RESEND_API_KEY', None):
            result = email_delivery.send_email('ada@x.io', 'Sales', 'Hello', '<p>Hi</p>')
        assert not result.success
        assert 'RESEND_API_KEY' in result.error
        breaker.call.assert_not_called()

    def test_http_error_reported(self, mock_post):
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError('422 Client Error')
        result = email_delivery.send_email('ada@x.io', 'Sales', 'Hello', '<p>Hi</p>')
        assert not result.success
        assert '422' in result.error

    def test_timeout_reported(self, mock_post):
        mock_post.side_effect = requests.Timeout('timed out')
        result = email_delivery.send_email('ada@x.io', 'Sales', 'Hello', '<p>Hi</p>')
        assert not result.success

    def test_open_breaker_reported(self, breaker, api_key):
        breaker.call.side_effect = CircuitOpenError('resend', retry_after=60)
        result = email_delivery.send_email('ada@x.io', 'Sales', 'Hello', '<p>Hi</p>')
        assert not result.success
        assert 'resend' in result.error

    def test_unreadable_response(self, mock_post):
        mock_post.return_value.json.side_effect = ValueError('Expecting value')
        result = email_delivery.send_email('ada@x.io', 'Sales', 'Hello', '<p>Hi</p>')
        assert not result.success
        assert result.error.startswith('Invalid response')
