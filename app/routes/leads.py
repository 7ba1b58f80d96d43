"""
Leads blueprint — submission, review actions, disputes, meeting booking.

Handlers stay thin: parse the JSON body, call the lifecycle, serialize the
result. Lifecycle errors are mapped to status codes by the app's error handler.
"""
import logging
from flask import Blueprint, jsonify, request

from app.config import LEAD_PHASES
from app.lifecycle.controller import get_lifecycle
from app.lifecycle.errors import InvalidRequest
from app.services import store

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)


def _json():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return payload


# ── Intake ────────────────────────────────────────────────────────────────────

@bp.route('/api/leads', methods=['POST'])
def submit_lead():
    """Public form submission."""
    payload = _json()
    metadata = payload.pop('metadata', None)
    result = get_lifecycle().submit(payload, metadata=metadata)
    return jsonify(result.to_dict()), 201


@bp.route('/api/leads')
def list_leads():
    phase = request.args.get('phase')
    if phase and phase not in LEAD_PHASES:
        raise InvalidRequest(f"phase must be one of {LEAD_PHASES}")
    limit = request.args.get('limit', type=int)
    leads = store.list_leads(phase=phase, limit=limit)
    return jsonify({'leads': [lead.to_dict() for lead in leads], 'count': len(leads)})


@bp.route('/api/leads/<lead_id>')
def get_lead(lead_id):
    return jsonify(store.get_lead(lead_id).to_dict())


# ── Review ────────────────────────────────────────────────────────────────────

@bp.route('/api/leads/<lead_id>/classify', methods=['POST'])
def classify_lead(lead_id):
    """First human classification of a lead."""
    payload = _json()
    result = get_lifecycle().human_classify(
        lead_id, payload.get('classification'), reviewer=payload.get('reviewer'),
    )
    return jsonify(result.to_dict())


@bp.route('/api/leads/<lead_id>/review/reclassify', methods=['POST'])
def reclassify_lead(lead_id):
    payload = _json()
    result = get_lifecycle().reclassify(
        lead_id, payload.get('classification'), reviewer=payload.get('reviewer'),
    )
    return jsonify(result.to_dict())


@bp.route('/api/leads/<lead_id>/review/approve', methods=['POST'])
def approve_lead(lead_id):
    payload = request.get_json(silent=True) or {}
    result = get_lifecycle().approve(lead_id, approver=payload.get('approver'))
    return jsonify(result.to_dict())


@bp.route('/api/leads/<lead_id>/review/edit', methods=['PATCH'])
def edit_lead_email(lead_id):
    payload = _json()
    result = get_lifecycle().edit(
        lead_id, payload.get('email_text'),
        edit_note=payload.get('edit_note'), editor=payload.get('editor'),
    )
    return jsonify(result.to_dict())


@bp.route('/api/leads/<lead_id>/case-studies', methods=['PUT'])
def update_case_studies(lead_id):
    payload = _json()
    result = get_lifecycle().set_case_studies(
        lead_id, payload.get('case_studies'), editor=payload.get('editor'),
    )
    return jsonify(result.to_dict())


# ── Links from outbound emails ────────────────────────────────────────────────

@bp.route('/api/leads/<lead_id>/feedback', methods=['POST'])
def lead_feedback(lead_id):
    """Reroute a forwarded lead, or let support mark it self-service."""
    payload = _json()
    source = payload.get('source')
    if payload.get('self_service'):
        if source != 'support':
            raise InvalidRequest("Only the support team can mark a lead self-service",
                                 lead_id=lead_id)
        result = get_lifecycle().mark_self_service(lead_id)
    else:
        result = get_lifecycle().reroute(lead_id, source, reason=payload.get('reason'))
    return jsonify(result.to_dict())


@bp.route('/api/leads/<lead_id>/book-meeting', methods=['POST'])
def book_meeting(lead_id):
    result = get_lifecycle().book_meeting(lead_id)
    return jsonify(result.to_dict())
