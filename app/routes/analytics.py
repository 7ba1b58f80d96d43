"""
Analytics blueprint — human/AI agreement, lead overview, raw events.
"""
from flask import Blueprint, jsonify, request

from app.config import EVENT_TYPES
from app.lifecycle.aggregator import COMPARISON_EVENT, aggregate_agreement, compute_overview
from app.lifecycle.errors import InvalidRequest
from app.services import store
from app.services.analytics import list_events

bp = Blueprint('analytics', __name__)


@bp.route('/api/analytics/agreement')
def agreement():
    """How often reviewers agreed with the bot, optionally for one configuration."""
    events = list_events(event_type=COMPARISON_EVENT,
                         configuration_id=request.args.get('configuration_id'))
    report = aggregate_agreement(events)
    if report is None:
        return jsonify({'agreement': None, 'message': 'No comparison data yet'})
    return jsonify({'agreement': report})


@bp.route('/api/analytics/overview')
def overview():
    summary = compute_overview(store.list_leads())
    if summary is None:
        return jsonify({'overview': None, 'message': 'No leads yet'})
    return jsonify({'overview': summary})


@bp.route('/api/analytics/events')
def events():
    event_type = request.args.get('event_type')
    if event_type and event_type not in EVENT_TYPES:
        raise InvalidRequest(f"event_type must be one of {EVENT_TYPES}")
    rows = list_events(event_type=event_type, lead_id=request.args.get('lead_id'))
    return jsonify({'events': rows, 'count': len(rows)})
