"""
Centralized configuration — env vars, lifecycle constants, default business config.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o')

# ── Email delivery (Resend) ──────────────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_API_URL = os.getenv('RESEND_API_URL', 'https://api.resend.com/emails')
# Resend only accepts verified sender domains; the display name still varies per template
EMAIL_FROM_ADDRESS = os.getenv('EMAIL_FROM_ADDRESS', 'onboarding@resend.dev')

# Links inside outbound emails (book-meeting, feedback)
BASE_URL = os.getenv('BASE_URL', 'http://localhost:5000').rstrip('/')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Auth ─────────────────────────────────────────────────────────────────────
API_TOKEN = os.getenv('API_TOKEN')

# ── Lifecycle tuning ─────────────────────────────────────────────────────────
DELIVERY_CLAIM_TTL_SECONDS = int(os.getenv('DELIVERY_CLAIM_TTL_SECONDS', '300'))
CONFIG_CACHE_SECONDS = int(os.getenv('CONFIG_CACHE_SECONDS', '60'))
CLASSIFICATION_JOB_TIMEOUT = int(os.getenv('CLASSIFICATION_JOB_TIMEOUT', '600'))
MAX_APPLY_ATTEMPTS = int(os.getenv('MAX_APPLY_ATTEMPTS', '3'))

# ── Lead phases ──────────────────────────────────────────────────────────────
LEAD_PHASES = [
    'classify',
    'review',
    'done',
]

# ── Analytics event types ────────────────────────────────────────────────────
EVENT_TYPES = [
    'classified',
    'email_generated',
    'email_edited',
    'email_approved',
    'reclassified',
    'meeting_booked',
    'lead_forwarded',
    'lead_rerouted',
    'human_ai_comparison',
]

# ── Prompts ──────────────────────────────────────────────────────────────────
CLASSIFICATION_PROMPT = """You are a lead qualification expert for a B2B software company.

Analyze the following lead inquiry and classify it into one of these categories:

- high-quality: High-value potential customer with clear business need and buying intent
- low-quality: Real opportunity but not a good fit (small company, limited budget, early-stage startup), or an ambiguous inquiry that needs human review
- support: Someone asking for product support or help
- existing: Existing customer who should be forwarded to their account team
- irrelevant: Spam, test submission, student project, or otherwise not a real lead

Rules:
1. Companies with no verifiable web presence are never "high-quality".
2. If an inquiry is both a support request and a new product request, classify on business value.
3. Be conservative. When in doubt, classify as "low-quality" with lower confidence so a human reviews it.

Respond in JSON:
{
  "classification": "high-quality" | "low-quality" | "support" | "existing" | "irrelevant",
  "confidence": 0.0-1.0,
  "reasoning": "1-2 sentences on business value, intent and fit",
  "existing_customer": true/false
}"""

EMAIL_GENERATION_PROMPT = """You are a Sales Development Representative writing the middle body of an email reply to a qualified lead.

Rules:
- Do NOT write a greeting, call-to-action, sign-off or signature; those are added automatically.
- Write 1-2 short paragraphs addressing their specific inquiry.
- Professional but personable, not salesy. No pricing, no promises.
- Do not name specific customers.

Respond in JSON:
{
  "body": "the email body text, paragraphs separated by a blank line"
}"""

# ── Default business configuration ───────────────────────────────────────────
# Seeds the first active configuration; thresholds keyed by classification value.
DEFAULT_CONFIGURATION = {
    'name': 'Baseline',
    'thresholds': {
        'high-quality': 0.98,
        'low-quality': 0.51,
        'support': 0.9,
        'existing': 0.9,
        'irrelevant': 0.9,
    },
    'sdr': {
        'name': 'Ryan',
        'last_name': 'Hemelt',
        'email': 'ryan@vercel.com',
        'title': 'Development Representative',
    },
    'support_team': {
        'name': 'Support Team',
        'email': 'support@vercel.com',
    },
    'account_team': {
        'name': 'Account Team',
        'email': 'accounts@vercel.com',
    },
    'email_templates': {
        'high-quality': {
            'subject': 'Hi from Vercel',
            'greeting': '<p>Hi {firstName},</p>',
            'call_to_action': (
                "<p>Let's schedule a quick 15 minute call to get started. "
                '<a href="{baseUrl}/book-meeting/{leadId}">Book a Meeting</a></p>'
            ),
            'sign_off': '<p>Best,<br>{sdrName}</p>',
            'signature': '<p>{sdrName} {sdrLastName}<br>▲ Vercel {sdrTitle}</p>',
        },
        'low-quality': {
            'subject': 'Thanks for your interest in Vercel',
            'body': (
                '<p>Hi {firstName},</p>'
                '<p>Thanks for reaching out! We appreciate your interest in Vercel.</p>'
                '<p>Check out <a href="https://vercel.com/customers">vercel.com/customers</a> '
                'to see how companies are using our platform.</p>'
                '<p>Best,</p><p>▲ Vercel Sales</p>'
            ),
            'sender_name': 'Vercel Sales',
            'sender_email': 'sales@vercel.com',
        },
        'support': {
            'subject': 'Looking for support?',
            'body': (
                '<p>Hi {firstName},</p>'
                '<p>Thanks for reaching out to Vercel Sales!</p>'
                "<p>We think our support team can give you the best answer. We've notified them "
                'and they will reach out if they can help.</p>'
                '<p>Best,</p><p>▲ Vercel Sales</p>'
                '<p style="color: #666;"><strong>Not looking for support?</strong><br>'
                '<a href="{baseUrl}/feedback/{leadId}/customer">Tell us more</a></p>'
            ),
        },
        'existing': {
            'subject': 'Looking for Account Support?',
            'body': (
                '<p>Hi {firstName},</p>'
                '<p>Thanks for reaching out to Vercel Sales!</p>'
                '<p>Our records show {company} already has an assigned account team at Vercel. '
                "They'll be reaching out to you.</p>"
                '<p>Best,</p><p>▲ Vercel Sales</p>'
                '<p style="color: #666;"><strong>Not looking for your account team?</strong><br>'
                '<a href="{baseUrl}/feedback/{leadId}/customer">Tell us more</a></p>'
            ),
        },
        'support-internal': {
            'subject': 'Support Request from {firstName} at {company}',
            'body': (
                "<p>We believe we've received a support request. Could you take a look?</p>"
                '<p><strong>From:</strong> {fullName} ({email})<br><strong>Company:</strong> {company}</p>'
                '<p><strong>Message:</strong><br>{message}</p>'
                '<p style="color: #666;"><strong>Not a support request?</strong><br>'
                '<a href="{baseUrl}/feedback/{leadId}/support">Send it back</a></p>'
            ),
        },
        'existing-internal': {
            'subject': 'Existing Customer Inquiry: {firstName} at {company}',
            'body': (
                '<p>An existing customer has reached out.</p>'
                '<p><strong>From:</strong> {fullName} ({email})<br><strong>Company:</strong> {company}</p>'
                '<p><strong>Message:</strong><br>{message}</p>'
                '<p style="color: #666;"><strong>Not an existing customer?</strong><br>'
                '<a href="{baseUrl}/feedback/{leadId}/sales">Send it back</a></p>'
            ),
        },
    },
    'email_settings': {
        'enabled': True,
        'test_mode': True,
        'test_email': 'inbound-test@example.com',
    },
    # Whether the requester gets a reply for non-meeting outcomes
    'response_to_lead': {
        'low-quality': True,
        'support': True,
        'existing': True,
    },
    'rollout_percentage': 1.0,
    'prompts': {
        'classification': CLASSIFICATION_PROMPT,
        'email': EMAIL_GENERATION_PROMPT,
    },
}
