"""
Health blueprint — liveness plus circuit breaker state for upstream services.
"""
import logging
from flask import Blueprint, jsonify

from app.services.circuit_breaker import get_all_breakers

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Liveness probe."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Breaker state and counters per upstream service."""
    services = {name: breaker.get_health() for name, breaker in get_all_breakers().items()}
    degraded = [name for name, health in services.items() if health['state'] == 'open']
    return jsonify({
        'status': 'degraded' if degraded else 'healthy',
        'degraded': degraded,
        'services': services,
    })


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_breaker(service):
    breaker = get_all_breakers().get(service)
    if breaker is None:
        return jsonify({'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    logger.info("Breaker '%s' reset via API", service)
    return jsonify({'ok': True, 'service': service, 'state': breaker.state})
