"""
Email delivery — Resend HTTP API via requests, behind the 'resend' circuit breaker.

send_email() never raises: every failure comes back as DeliveryResult(success=False)
so the lifecycle can keep the lead open and record the error.

In test mode every message goes to the test address, the subject is prefixed
with [TEST] and the original recipient is noted at the top of the body.
"""
import logging
from typing import Optional

import requests

from app.config import EMAIL_FROM_ADDRESS, RESEND_API_KEY, RESEND_API_URL
from app.lifecycle.base import DeliveryResult
from app.services.circuit_breaker import CircuitOpenError, get_breaker

logger = logging.getLogger('services.email_delivery')

REQUEST_TIMEOUT = 15


def _post(payload):
    response = requests.post(
        RESEND_API_URL,
        json=payload,
        headers={'Authorization': f'Bearer {RESEND_API_KEY}'},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    return response.json()


def send_email(to: str, from_name: str, subject: str, html: str,
               test_mode_email: Optional[str] = None,
               reply_to: Optional[str] = None) -> DeliveryResult:
    """Send one HTML email. ``test_mode_email`` redirects it."""
    test_mode = bool(test_mode_email)
    recipient = test_mode_email or to

    if test_mode:
        subject = f'[TEST] {subject}'
        html = (
            f'<p style="color: #666; font-style: italic;">'
            f'[Test Mode - Original recipient: {to}]</p>{html}'
        )

    if not RESEND_API_KEY:
        return DeliveryResult(False, recipient, test_mode, error='RESEND_API_KEY not configured')

    payload = {
        'from': f'{from_name} <{EMAIL_FROM_ADDRESS}>',
        'to': [recipient],
        'subject': subject,
        'html': html,
    }
    if reply_to:
        payload['reply_to'] = reply_to

    try:
        data = get_breaker('resend').call(_post, payload)
    except CircuitOpenError as e:
        logger.warning("Email to %s skipped: %s", recipient, e)
        return DeliveryResult(False, recipient, test_mode, error=str(e))
    except requests.RequestException as e:
        logger.error("Email to %s failed: %s", recipient, e)
        return DeliveryResult(False, recipient, test_mode, error=str(e))
    except ValueError as e:
        # 2xx with a body that is not JSON
        logger.error("Email to %s returned an unreadable response: %s", recipient, e)
        return DeliveryResult(False, recipient, test_mode, error=f'Invalid response: {e}')

    message_id = (data or {}).get('id')
    logger.info("Email sent to %s (id=%s, test_mode=%s)", recipient, message_id, test_mode)
    return DeliveryResult(True, recipient, test_mode, message_id=message_id)
