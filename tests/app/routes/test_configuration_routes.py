"""Tests for the configurations blueprint — /api/configurations endpoints."""


class TestConfigurationRoutes:

    def test_create_draft(self, client):
        resp = client.post('/api/configurations', json={
            'name': 'Cautious',
            'thresholds': {'support': 0.95},
            'created_by': 'ops',
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data['status'] == 'draft'
        assert data['thresholds']['support'] == 0.95

    def test_create_requires_name(self, client):
        assert client.post('/api/configurations', json={'thresholds': {}}).status_code == 400

    def test_create_rejects_bad_threshold(self, client):
        resp = client.post('/api/configurations', json={'name': 'X', 'thresholds': {'support': 2}})
        assert resp.status_code == 400

    def test_no_active_configuration(self, client):
        assert client.get('/api/configurations/active').status_code == 404

    def test_activate_and_archive_flow(self, client):
        first = client.post('/api/configurations', json={'name': 'First', 'activate': True}).get_json()
        second = client.post('/api/configurations', json={'name': 'Second'}).get_json()

        resp = client.post(f"/api/configurations/{second['id']}/activate")
        assert resp.status_code == 200
        assert client.get('/api/configurations/active').get_json()['id'] == second['id']
        assert client.get(f"/api/configurations/{first['id']}").get_json()['status'] == 'archived'

        # active config cannot be archived directly
        assert client.post(f"/api/configurations/{second['id']}/archive").status_code == 400

    def test_list(self, client):
        client.post('/api/configurations', json={'name': 'One'})
        client.post('/api/configurations', json={'name': 'Two'})
        data = client.get('/api/configurations').get_json()
        assert {c['name'] for c in data['configurations']} == {'One', 'Two'}

    def test_unknown_configuration(self, client):
        assert client.get('/api/configurations/nope').status_code == 404
        assert client.post('/api/configurations/nope/activate').status_code == 404
