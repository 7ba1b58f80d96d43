"""
OpenAI helpers — lead classification and meeting-offer draft generation.

Both calls go through the 'openai' circuit breaker and ask for JSON output.
Any failure (no client, open breaker, API error, malformed JSON, out-of-range
values) is raised as a typed UpstreamFailure so the lifecycle can record it.
"""
import html
import json
import logging
from typing import Any, Dict

from app.config import OPENAI_MODEL, CLASSIFICATION_PROMPT, EMAIL_GENERATION_PROMPT
from app.extensions import openai_client as client
from app.lifecycle.base import BotResult, Submission, parse_classification
from app.lifecycle.errors import ClassificationFailed, EmailGenerationFailed

logger = logging.getLogger('services.openai')


def _chat_completion(**kwargs):
    """Route chat completion through the OpenAI circuit breaker."""
    from app.services.circuit_breaker import get_breaker
    cb = get_breaker('openai')
    return cb.call(client.chat.completions.create, **kwargs)


def _json_completion(system_prompt: str, user_content: str) -> Dict[str, Any]:
    if client is None:
        raise RuntimeError("OPENAI_API_KEY not configured")
    response = _chat_completion(
        model=OPENAI_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
        response_format={"type": "json_object"},
        temperature=0.2,
    )
    return json.loads(response.choices[0].message.content)


def _describe(submission: Submission) -> str:
    return (
        f"Name: {submission.lead_name}\n"
        f"Email: {submission.email}\n"
        f"Company: {submission.company}\n"
        f"Message: {submission.message}"
    )


def classify_lead(submission: Submission, prompt: str = None, lead_id: str = None) -> BotResult:
    """Classify one inquiry. Raises ClassificationFailed."""
    try:
        result = _json_completion(prompt or CLASSIFICATION_PROMPT, _describe(submission))
    except Exception as e:
        logger.error("Classification call failed for lead %s: %s", lead_id, e,
                     extra={'lead_id': lead_id})
        raise ClassificationFailed(f"Classification failed: {e}", lead_id=lead_id,
                                   service='openai') from e

    try:
        classification = parse_classification(result.get('classification'))
        confidence = float(result.get('confidence'))
    except (TypeError, ValueError) as e:
        raise ClassificationFailed(f"Invalid classification result: {result!r}",
                                   lead_id=lead_id, service='openai') from e
    if not 0.0 <= confidence <= 1.0:
        raise ClassificationFailed(f"Confidence out of range: {confidence}",
                                   lead_id=lead_id, service='openai')

    logger.info("Lead %s classified as %s (%.2f)", lead_id, classification.value, confidence,
                extra={'lead_id': lead_id, 'classification': classification.value})
    return BotResult(
        classification=classification,
        confidence=confidence,
        reasoning=str(result.get('reasoning') or ''),
        existing_customer=bool(result.get('existing_customer', False)),
        crm_record_id=result.get('crm_record_id'),
        research_report=result.get('research_report'),
    )


def text_to_html(text: str) -> str:
    """Blank-line separated paragraphs → <p> blocks, escaped."""
    paragraphs = [p.strip() for p in text.replace('\r\n', '\n').split('\n\n') if p.strip()]
    return ''.join(
        '<p>' + html.escape(p).replace('\n', '<br>') + '</p>' for p in paragraphs
    )


def generate_email_body(submission: Submission, prompt: str = None,
                        bot_research: Dict[str, Any] = None, lead_id: str = None) -> str:
    """Draft the body of a meeting-offer email as HTML. Raises EmailGenerationFailed."""
    context = _describe(submission)
    if bot_research and bot_research.get('reasoning'):
        context += f"\n\nQualification notes: {bot_research['reasoning']}"

    try:
        result = _json_completion(prompt or EMAIL_GENERATION_PROMPT, context)
    except Exception as e:
        logger.error("Email generation failed for lead %s: %s", lead_id, e,
                     extra={'lead_id': lead_id})
        raise EmailGenerationFailed(f"Email generation failed: {e}", lead_id=lead_id,
                                    service='openai') from e

    body = (result.get('body') or '').strip()
    if not body:
        raise EmailGenerationFailed("Email generation returned an empty body",
                                    lead_id=lead_id, service='openai')
    return text_to_html(body)
