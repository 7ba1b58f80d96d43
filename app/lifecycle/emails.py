"""
Outbound email assembly from the active configuration's templates.

The stored draft is only the body of a meeting offer; greeting, call-to-action,
sign-off and signature are added here at send time so template changes apply
to every unsent draft.
"""
import html
from typing import Dict, List, Tuple

from app.config import BASE_URL


def fill(template: str, values: Dict[str, str]) -> str:
    """Replace every ``{name}`` placeholder that has a value; leave others intact."""
    out = template or ''
    for key, value in values.items():
        out = out.replace('{' + key + '}', value)
    return out


def template_values(lead, config) -> Dict[str, str]:
    submission = lead.submission
    sdr = config.sdr or {}
    return {
        'firstName': html.escape(submission.first_name),
        'fullName': html.escape(submission.lead_name),
        'company': html.escape(submission.company),
        'email': html.escape(submission.email),
        'message': html.escape(submission.message).replace('\n', '<br>'),
        'leadId': lead.id,
        'baseUrl': BASE_URL,
        'sdrName': html.escape(sdr.get('name', '')),
        'sdrLastName': html.escape(sdr.get('last_name', '')),
        'sdrTitle': html.escape(sdr.get('title', '')),
    }


def render_case_studies(case_studies: List[Dict[str, str]]) -> str:
    if not case_studies:
        return ''
    items = ''.join(
        '<li><a href="{url}">{company}</a> ({industry})</li>'.format(
            url=html.escape(cs.get('url', ''), quote=True),
            company=html.escape(cs.get('company', '')),
            industry=html.escape(cs.get('industry', '')),
        )
        for cs in case_studies
    )
    return f'<p>Teams like yours on Vercel:</p><ul>{items}</ul>'


def assemble_meeting_offer(lead, config) -> Tuple[str, str]:
    """(subject, html) for a high-quality reply built around the draft body."""
    template = config.template('high-quality')
    values = template_values(lead, config)
    body = (lead.draft or {}).get('text', '')
    parts = [
        fill(template.get('greeting', ''), values),
        body,
        fill(template.get('call_to_action', ''), values),
        fill(template.get('sign_off', ''), values),
        fill(template.get('signature', ''), values),
        render_case_studies(lead.matched_case_studies),
    ]
    return fill(template.get('subject', ''), values), ''.join(parts)


def render_template(lead, config, key: str) -> Tuple[str, str]:
    """(subject, html) for a fixed template such as 'low-quality' or 'support-internal'."""
    template = config.template(key)
    values = template_values(lead, config)
    return fill(template.get('subject', ''), values), fill(template.get('body', ''), values)
