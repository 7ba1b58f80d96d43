"""Tests for /health, /api/health and /api/health/<service>/reset endpoints."""


class TestHealthCheck:

    def test_liveness(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}


class TestApiHealth:
    """GET /api/health returns circuit breaker states."""

    def test_returns_200(self, client):
        resp = client.get('/api/health')
        assert resp.status_code == 200

    def test_returns_services_dict(self, client):
        data = client.get('/api/health').get_json()
        # init_breakers is called in create_app
        assert set(data['services']) == {'openai', 'resend'}
        assert data['status'] == 'healthy'
        assert data['degraded'] == []

    def test_service_has_expected_fields(self, client):
        svc = client.get('/api/health').get_json()['services']['resend']
        for field in ('name', 'state', 'failure_count', 'failure_threshold',
                      'total_success', 'total_failure'):
            assert field in svc

    def test_open_breaker_reports_degraded(self, client, mock_redis):
        mock_redis.get.side_effect = lambda key: 'open' if key == 'breaker:openai:state' else None
        data = client.get('/api/health').get_json()
        assert data['status'] == 'degraded'
        assert data['degraded'] == ['openai']


class TestResetCircuit:
    """POST /api/health/<service>/reset resets a circuit breaker."""

    def test_reset_known_service(self, client, mock_redis):
        resp = client.post('/api/health/openai/reset')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['ok'] is True
        mock_redis.set.assert_any_call('breaker:openai:state', 'closed')

    def test_reset_unknown_service_404(self, client):
        resp = client.post('/api/health/nonexistent/reset')
        assert resp.status_code == 404
