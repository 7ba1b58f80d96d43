"""
Configurations blueprint — create, inspect, activate, archive.
"""
from flask import Blueprint, jsonify, request

from app.lifecycle.errors import InvalidRequest
from app.services import configurations

bp = Blueprint('configurations', __name__)


@bp.route('/api/configurations')
def list_configurations():
    return jsonify({'configurations': configurations.list_configurations()})


@bp.route('/api/configurations', methods=['POST'])
def create_configuration():
    """Create a draft from the defaults plus overrides; ``activate`` swaps it in."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")

    name = (payload.pop('name', '') or '').strip()
    if not name:
        raise InvalidRequest("'name' is required")
    activate = bool(payload.pop('activate', False))
    created_by = payload.pop('created_by', None)

    snapshot = configurations.create_configuration(
        name, overrides=payload, created_by=created_by, activate=activate,
    )
    return jsonify(snapshot.to_dict()), 201


@bp.route('/api/configurations/active')
def active_configuration():
    return jsonify(configurations.get_active_configuration().to_dict())


@bp.route('/api/configurations/<config_id>')
def get_configuration(config_id):
    return jsonify(configurations.get_configuration(config_id).to_dict())


@bp.route('/api/configurations/<config_id>/activate', methods=['POST'])
def activate_configuration(config_id):
    return jsonify(configurations.activate_configuration(config_id).to_dict())


@bp.route('/api/configurations/<config_id>/archive', methods=['POST'])
def archive_configuration(config_id):
    return jsonify(configurations.archive_configuration(config_id).to_dict())
