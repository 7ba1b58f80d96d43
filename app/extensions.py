"""
Shared client instances — Redis (RQ + circuit breakers), OpenAI.

Importing this module never opens a connection: redis.from_url is lazy and the
OpenAI client is only built when a key is configured.
"""
import logging
import redis

from app.config import REDIS_URL, OPENAI_API_KEY, RESEND_API_KEY

logger = logging.getLogger('app.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# RQ stores pickled payloads, so its connection must return raw bytes
rq_connection = redis.from_url(REDIS_URL)

# ── OpenAI ────────────────────────────────────────────────────────────────────
openai_client = None
if OPENAI_API_KEY:
    try:
        from openai import OpenAI
        openai_client = OpenAI(api_key=OPENAI_API_KEY)
        logger.info("OpenAI client initialized successfully")
    except Exception as e:
        logger.error("Error initializing OpenAI client: %s", e)
else:
    logger.warning("OPENAI_API_KEY not set — classification and drafting will fail upstream")

if not RESEND_API_KEY:
    logger.warning("RESEND_API_KEY not set — email delivery will report failures")
