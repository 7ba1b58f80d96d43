"""
Lifecycle error taxonomy.

Each error carries the HTTP status the API maps it to. Callers distinguish
"rule violated" (InvalidTransition) from "lost a race, retry" (ConcurrencyConflict)
from "a collaborator failed, retry later" (UpstreamFailure).
"""


class LifecycleError(Exception):
    status_code = 500
    kind = 'lifecycle_error'

    def __init__(self, message, lead_id=None):
        self.message = message
        self.lead_id = lead_id
        super().__init__(message)

    def to_dict(self):
        body = {'error': self.message, 'kind': self.kind}
        if self.lead_id:
            body['lead_id'] = self.lead_id
        return body


class NotFound(LifecycleError):
    status_code = 404
    kind = 'not_found'


class InvalidRequest(LifecycleError):
    """Malformed input (missing field, unknown classification)."""
    status_code = 400
    kind = 'invalid_request'


class InvalidTransition(LifecycleError):
    """The operation is not valid in the lead's current state."""
    status_code = 400
    kind = 'invalid_transition'


class ConcurrencyConflict(LifecycleError):
    """Another writer changed the lead first, or a delivery is in flight."""
    status_code = 409
    kind = 'concurrency_conflict'


class UpstreamFailure(LifecycleError):
    status_code = 502
    kind = 'upstream_failure'

    def __init__(self, message, lead_id=None, service=None):
        self.service = service
        super().__init__(message, lead_id=lead_id)

    def to_dict(self):
        body = super().to_dict()
        if self.service:
            body['service'] = self.service
        return body


class ClassificationFailed(UpstreamFailure):
    kind = 'classification_failed'


class EmailGenerationFailed(UpstreamFailure):
    kind = 'email_generation_failed'


class DeliveryFailed(UpstreamFailure):
    kind = 'delivery_failed'
