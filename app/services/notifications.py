"""
Notifications — Slack webhook alerts for leads that need a human.

Notification failure never blocks a lifecycle operation.
"""
import logging
import requests

from app.config import SLACK_WEBHOOK_URL, BASE_URL

logger = logging.getLogger('services.notifications')


def _post(blocks, lead_id):
    requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
    logger.info("Slack notification sent for lead %s", lead_id[:8], extra={'lead_id': lead_id})


def notify_lead_rerouted(lead):
    """A closed lead was disputed and reopened."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        reroute = lead.reroute or {}
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Lead rerouted by {reroute.get('source', 'unknown')}",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Lead:* {lead.submission.lead_name}"},
                    {"type": "mrkdwn", "text": f"*Company:* {lead.submission.company}"},
                    {"type": "mrkdwn", "text": f"*Was:* {reroute.get('original_classification', '-')}"},
                    {"type": "mrkdwn", "text": f"*Now in:* {lead.phase.value}"},
                ]
            },
        ]
        if reroute.get('reason'):
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"_{reroute['reason'][:500]}_"}
            })
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"{BASE_URL}/api/leads/{lead.id}"}]
        })
        _post(blocks, lead.id)

    except Exception:
        logger.error("Failed to send reroute notification for lead %s", lead.id[:8], exc_info=True)


def notify_delivery_failed(lead, stage, error):
    """A terminal email could not be delivered; the lead stays open."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        current = lead.current_classification
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "Lead email delivery FAILED"}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Lead:* {lead.submission.lead_name}"},
                    {"type": "mrkdwn", "text": f"*Classification:* {current.value if current else '-'}"},
                    {"type": "mrkdwn", "text": f"*Stage:* {stage}"},
                    {"type": "mrkdwn", "text": f"*Phase:* {lead.phase.value}"},
                ]
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{str(error)[:500]}```"}
            },
        ]
        _post(blocks, lead.id)

    except Exception:
        logger.error("Failed to send delivery failure notification for lead %s",
                     lead.id[:8], exc_info=True)
