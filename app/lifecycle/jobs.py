"""
Background classification — RQ job that classifies a lead and applies the result.

The job reads the lead again when the classification comes back and hands the
result to LeadLifecycle.auto_classify(), which decides whether it still
applies. A lost race is retried a bounded number of times; a classification
failure sends the lead to a human.
"""
import logging

from app.config import CLASSIFICATION_JOB_TIMEOUT, MAX_APPLY_ATTEMPTS
from app.lifecycle.base import Phase
from app.lifecycle.errors import ClassificationFailed, ConcurrencyConflict, DeliveryFailed, NotFound

logger = logging.getLogger('lifecycle.jobs')

QUEUE_NAME = 'classification'


# ── Lazy RQ queue (no Redis connection at import) ─────────────────────────

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from app.extensions import rq_connection
        from rq import Queue
        _queue = Queue(QUEUE_NAME, connection=rq_connection)
    return _queue


def dispatch_classification(lead_id):
    """Enqueue classification for a freshly submitted lead."""
    job = _get_queue().enqueue(
        process_inbound_lead, lead_id,
        job_timeout=CLASSIFICATION_JOB_TIMEOUT,
        job_id=f'classify-{lead_id}',
    )
    logger.info("Queued classification job %s", job.id, extra={'lead_id': lead_id})
    return job


def process_inbound_lead(lead_id, lifecycle=None, classify=None):
    """RQ entrypoint. Returns a short status string for the job result."""
    from app.lifecycle.controller import get_lifecycle
    from app.services.openai_client import classify_lead

    lifecycle = lifecycle or get_lifecycle()
    classify = classify or classify_lead

    try:
        lead = lifecycle.store.get_lead(lead_id)
    except NotFound:
        logger.warning("Lead %s vanished before classification", lead_id, extra={'lead_id': lead_id})
        return 'missing'

    if lead.phase is Phase.DONE:
        return 'closed'

    config = lifecycle.configs.get_active_configuration()
    try:
        result = classify(lead.submission, prompt=config.prompts.get('classification'),
                          lead_id=lead_id)
    except ClassificationFailed as e:
        lifecycle.record_upstream_failure(lead_id, 'classification', e.message,
                                          fallback_phase=Phase.CLASSIFY)
        return 'classification_failed'

    for attempt in range(1, MAX_APPLY_ATTEMPTS + 1):
        try:
            outcome = lifecycle.auto_classify(lead_id, result)
        except ConcurrencyConflict as e:
            logger.info("Apply attempt %d/%d for lead %s lost a race: %s",
                        attempt, MAX_APPLY_ATTEMPTS, lead_id, e.message, extra={'lead_id': lead_id})
            continue
        except DeliveryFailed as e:
            # lead stays in review with the error attached
            logger.warning("Auto-send failed for lead %s: %s", lead_id, e.message,
                           extra={'lead_id': lead_id})
            return 'delivery_failed'
        return 'applied' if outcome.changed else 'ignored'

    logger.error("Gave up applying classification to lead %s after %d attempts",
                 lead_id, MAX_APPLY_ATTEMPTS, extra={'lead_id': lead_id})
    lifecycle.record_upstream_failure(lead_id, 'classification',
                                      'Could not apply classification after repeated conflicts')
    return 'conflict'
