"""Tests for app.services.openai_client — lead classification and draft generation."""
import json
import pytest
from unittest.mock import patch, MagicMock

from app.lifecycle.base import Classification, Submission
from app.lifecycle.errors import ClassificationFailed, EmailGenerationFailed


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mock_chat_response(content_dict_or_str):
    """Build a MagicMock that looks like openai ChatCompletion response."""
    if isinstance(content_dict_or_str, dict):
        text = json.dumps(content_dict_or_str)
    else:
        text = content_dict_or_str
    message = MagicMock()
    message.content = text
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


SUBMISSION = Submission('Ada Lovelace', 'ada@x.io', 'Analytical', 'We want to migrate 40 apps.')


@pytest.fixture
def chat():
    """Patch _chat_completion (bypasses the breaker and the real client)."""
    with patch('app.services.openai_client.client', MagicMock()), \
            patch('app.services.openai_client._chat_completion') as mock_chat:
        yield mock_chat


# ── classify_lead ────────────────────────────────────────────────────────────

class TestClassifyLead:

    def test_returns_bot_result(self, chat):
        from app.services.openai_client import classify_lead

        chat.return_value = _mock_chat_response({
            'classification': 'high-quality',
            'confidence': 0.93,
            'reasoning': 'Enterprise migration',
            'existing_customer': False,
        })
        result = classify_lead(SUBMISSION, lead_id='lead-1')

        assert result.classification is Classification.HIGH_QUALITY
        assert result.confidence == 0.93
        assert result.reasoning == 'Enterprise migration'

    def test_sends_json_mode_and_submission(self, chat):
        from app.services.openai_client import classify_lead

        chat.return_value = _mock_chat_response({'classification': 'support', 'confidence': 0.5})
        classify_lead(SUBMISSION, prompt='custom prompt')

        kwargs = chat.call_args.kwargs
        assert kwargs['response_format'] == {'type': 'json_object'}
        assert kwargs['messages'][0]['content'] == 'custom prompt'
        assert 'Analytical' in kwargs['messages'][1]['content']

    def test_alias_accepted(self, chat):
        from app.services.openai_client import classify_lead

        chat.return_value = _mock_chat_response({'classification': 'duplicate', 'confidence': 0.7})
        assert classify_lead(SUBMISSION).classification is Classification.EXISTING

    @pytest.mark.parametrize('payload', [
        {'classification': 'maybe', 'confidence': 0.5},
        {'classification': 'support'},
        {'classification': 'support', 'confidence': 1.5},
    ])
    def test_invalid_result(self, chat, payload):
        from app.services.openai_client import classify_lead

        chat.return_value = _mock_chat_response(payload)
        with pytest.raises(ClassificationFailed):
            classify_lead(SUBMISSION)

    def test_malformed_json(self, chat):
        from app.services.openai_client import classify_lead

        chat.return_value = _mock_chat_response('not json')
        with pytest.raises(ClassificationFailed) as exc_info:
            classify_lead(SUBMISSION, lead_id='lead-1')
        assert exc_info.value.service == 'openai'
        assert exc_info.value.lead_id == 'lead-1'

    def test_no_client(self):
        from app.services.openai_client import classify_lead

        with patch('app.services.openai_client.client', None):
            with pytest.raises(ClassificationFailed, match='OPENAI_API_KEY'):
                classify_lead(SUBMISSION)


# ── generate_email_body ──────────────────────────────────────────────────────

class TestGenerateEmailBody:

    def test_returns_html_paragraphs(self, chat):
        from app.services.openai_client import generate_email_body

        chat.return_value = _mock_chat_response({'body': 'First para.\n\nSecond <para>.'})
        body = generate_email_body(SUBMISSION)
        assert body == '<p>First para.</p><p>Second &lt;para&gt;.</p>'

    def test_includes_research_notes(self, chat):
        from app.services.openai_client import generate_email_body

        chat.return_value = _mock_chat_response({'body': 'Hi.'})
        generate_email_body(SUBMISSION, bot_research={'reasoning': 'Large team'})
        assert 'Large team' in chat.call_args.kwargs['messages'][1]['content']

    def test_empty_body(self, chat):
        from app.services.openai_client import generate_email_body

        chat.return_value = _mock_chat_response({'body': '  '})
        with pytest.raises(EmailGenerationFailed):
            generate_email_body(SUBMISSION)

    def test_api_error(self, chat):
        from app.services.openai_client import generate_email_body

        chat.side_effect = RuntimeError('rate limited')
        with pytest.raises(EmailGenerationFailed, match='rate limited'):
            generate_email_body(SUBMISSION)


class TestTextToHtml:

    def test_single_newlines_become_breaks(self):
        from app.services.openai_client import text_to_html
        assert text_to_html('a\nb\r\n\r\nc') == '<p>a<br>b</p><p>c</p>'
