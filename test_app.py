# test_app.py

import json
import unittest

from app import create_app
from config import TestConfig
from models import db

RIDE = {
    "client": {"name": "A", "phone": "555"},
    "pickup": {"location": "X", "time": "08:00", "date": "2024-01-01"},
    "dropoff": {"location": "Y", "time": "09:00"},
    "staff": {"requestedBy": "R", "driver": "D"},
    "clientCount": 1,
    "carSeats": 0,
}


class DashboardTestCase(unittest.TestCase):
    """Test suite for the transport dashboard Flask application."""

    def setUp(self):
        """Fresh app on an in-memory database and a test client for each test."""
        self.flask_app = create_app(TestConfig)
        with self.flask_app.app_context():
            db.create_all()
        self.app = self.flask_app.test_client()

    def tearDown(self):
        with self.flask_app.app_context():
            db.session.remove()
            db.drop_all()

    def _post(self, url, payload):
        return self.app.post(url, data=json.dumps(payload), content_type='application/json')

    def _put(self, url, payload):
        return self.app.put(url, data=json.dumps(payload), content_type='application/json')

    def _enter_site(self):
        response = self._post('/auth', {'password': TestConfig.SITE_PASSWORD})
        self.assertEqual(response.status_code, 200)

    def _sign_in_admin(self, name='Dispatch'):
        result = self.flask_app.test_cli_runner().invoke(args=['create-admin', 'admin@example.org', 'secret', '--name', name])
        self.assertIn('created', result.output)
        response = self._post('/login', {'email': 'admin@example.org', 'password': 'secret'})
        self.assertEqual(response.status_code, 200)
        return json.loads(response.data)['user']

    def test_01_site_gate(self):
        """Nothing is reachable until the shared password is entered."""
        self.assertEqual(self.app.get('/api/transports?date=2024-01-01').status_code, 401)
        response = self.app.get('/')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/auth', response.headers['Location'])
        self.assertEqual(self._post('/auth', {'password': 'wrong'}).status_code, 401)
        self.assertFalse(json.loads(self.app.get('/auth').data)['authenticated'])
        self._enter_site()
        self.assertTrue(json.loads(self.app.get('/auth').data)['authenticated'])
        self.assertEqual(self.app.get('/api/transports?date=2024-01-01').status_code, 200)

    def test_02_admin_gate(self):
        """Writes need a signed-in user even after the site gate."""
        self._enter_site()
        self.assertEqual(self._post('/api/transports', RIDE).status_code, 401)
        response = self.app.get('/admin')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login', response.headers['Location'])
        self.assertIn('redirect=', response.headers['Location'])

    def test_03_login(self):
        self._enter_site()
        self.assertEqual(self._post('/login', {'email': 'admin@example.org'}).status_code, 400)
        self.assertEqual(self._post('/login', {'email': 'nobody@example.org', 'password': 'x'}).status_code, 401)
        user = self._sign_in_admin()
        self.assertEqual(user['username'], 'Dispatch')
        self.assertTrue(user['isAdmin'])
        self.assertEqual(json.loads(self.app.get('/api/me').data)['user']['email'], 'admin@example.org')
        self.assertEqual(self.app.get('/login').status_code, 302)
        self._post('/logout', {})
        self.assertIsNone(json.loads(self.app.get('/api/me').data)['user'])
        self.assertTrue(json.loads(self.app.get('/auth').data)['authenticated'])

    def test_04_transport_lifecycle(self):
        self._enter_site()
        self._sign_in_admin()
        response = self._post('/api/transports', RIDE)
        self.assertEqual(response.status_code, 201)
        created = json.loads(response.data)
        self.assertTrue(created['id'])
        self.assertEqual(created['dropoff']['date'], '2024-01-01')
        self.assertEqual(created['status'], 'scheduled')

        day = json.loads(self.app.get('/api/transports?date=2024-01-01').data)
        self.assertEqual([t['id'] for t in day['transports']], [created['id']])

        edited = dict(RIDE, status='in-progress', vehicle='Van 2')
        response = self._put(f"/api/transports/{created['id']}", edited)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data)['status'], 'in-progress')
        self.assertEqual(self._put('/api/transports/missing', edited).status_code, 404)

        self.assertEqual(self.app.delete(f"/api/transports/{created['id']}").status_code, 200)
        self.assertEqual(self.app.delete(f"/api/transports/{created['id']}").status_code, 404)
        day = json.loads(self.app.get('/api/transports?date=2024-01-01').data)
        self.assertEqual(day['transports'], [])

    def test_05_validation_errors(self):
        self._enter_site()
        self._sign_in_admin()
        response = self._post('/api/transports', dict(RIDE, staff={"requestedBy": "R", "driver": ""}))
        self.assertEqual(response.status_code, 400)
        self.assertIn('mandatory', json.loads(response.data)['error'])
        self.assertEqual(self._post('/api/transports', dict(RIDE, clientCount='many')).status_code, 400)
        self.assertEqual(self._post('/api/transports', dict(RIDE, pickup={"location": "X", "date": "01/01/2024"})).status_code, 400)
        self.assertEqual(self.app.get('/api/transports?date=tomorrow').status_code, 400)
        self.assertEqual(self.app.get('/api/transports?location=denver').status_code, 400)

    def test_06_staff_request_without_admin(self):
        """Ride requests only need the site password and always start scheduled."""
        self._enter_site()
        response = self._post('/api/requests', dict(RIDE, status='completed'))
        self.assertEqual(response.status_code, 201)
        self.assertEqual(json.loads(response.data)['status'], 'scheduled')
        self.assertEqual(self._post('/api/requests', dict(RIDE, client={"name": ""})).status_code, 400)

    def test_07_weekly_schedule_and_location_filter(self):
        self._enter_site()
        self._post('/api/requests', dict(RIDE, pickup={"location": "Omaha Clinic", "time": "10:00", "date": "2024-01-02"}))
        self._post('/api/requests', dict(RIDE, pickup={"location": "Lincoln Home", "time": "07:00", "date": "2024-01-02"}))
        week = json.loads(self.app.get('/api/schedule/week?start=2024-01-01&days=7').data)
        self.assertEqual(len(week), 7)
        self.assertEqual(week[0], {"date": "2024-01-01", "transports": []})
        self.assertEqual([t['pickup']['time'] for t in week[1]['transports']], ['07:00', '10:00'])
        omaha = json.loads(self.app.get('/api/transports?date=2024-01-02&location=omaha').data)
        self.assertEqual(omaha['count'], 1)
        self.assertEqual(self.app.get('/api/schedule/week?days=90').status_code, 400)

    def test_08_announcements_and_read_state(self):
        self._enter_site()
        self._sign_in_admin()
        older = self._post('/api/announcements', {'title': 'Older', 'content': 'First', 'date': '2024-01-01', 'priority': 'low'})
        newer = self._post('/api/announcements', {'title': 'Newer', 'content': 'Second', 'date': '2024-01-01', 'priority': 'high'})
        self.assertEqual((older.status_code, newer.status_code), (201, 201))
        older_id, newer_id = json.loads(older.data)['id'], json.loads(newer.data)['id']
        self.assertEqual(json.loads(newer.data)['author'], 'Dispatch')
        self.assertEqual(self._post('/api/announcements', {'title': 'No body'}).status_code, 400)

        board = json.loads(self.app.get('/api/announcements').data)
        self.assertEqual([a['id'] for a in board['announcements']], [newer_id, older_id])
        self.assertEqual(board['newCount'], 2)
        self.assertEqual(board['lastViewed'], 0.0)
        self.assertTrue(all(a['isNew'] for a in board['announcements']))

        self.assertEqual(self._post(f'/api/announcements/{newer_id}/read', {}).status_code, 200)
        self.assertEqual(json.loads(self.app.get('/api/announcements/unread-count').data)['count'], 1)
        self._post('/api/announcements/read', {'ids': [older_id, newer_id]})
        board = json.loads(self.app.get('/api/announcements').data)
        self.assertEqual(board['newCount'], 0)
        self.assertGreater(board['lastViewed'], 0)

        response = self._put(f'/api/announcements/{older_id}', {'title': 'Older (edited)', 'content': 'First', 'priority': 'medium'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data)['timestamp'], json.loads(older.data)['timestamp'])
        self.assertEqual(json.loads(response.data)['date'], '2024-01-01')
        self.assertEqual(self.app.delete(f'/api/announcements/{older_id}').status_code, 200)
        self.assertEqual(self.app.delete(f'/api/announcements/{older_id}').status_code, 404)

    def test_09_dashboard_pages(self):
        self._enter_site()
        home = json.loads(self.app.get('/?date=2024-01-01').data)
        self.assertEqual(home['date'], '2024-01-01')
        self.assertEqual(home['newAnnouncements'], 0)
        self.assertIsNone(home['user'])
        self._sign_in_admin()
        admin = json.loads(self.app.get('/admin').data)
        self.assertEqual(len(admin['week']), 7)

    def test_10_read_ledger_stays_out_of_the_cookie(self):
        """Hundreds of seen ids persist server-side; the cookie only carries the ledger id."""
        self._enter_site()
        ids = [f"announcement-{i:04d}-{'x' * 24}" for i in range(300)]
        response = self._post('/api/announcements/read', {'ids': ids})
        self.assertEqual(response.status_code, 200)
        for cookie in response.headers.getlist('Set-Cookie'):
            self.assertLess(len(cookie), 4096)
        self.assertEqual(len(json.loads(response.data)['seen']), 300)
        response = self._post('/api/announcements/read', {'ids': []})
        self.assertEqual(json.loads(response.data)['seen'], sorted(ids))
        for cookie in response.headers.getlist('Set-Cookie'):
            self.assertLess(len(cookie), 4096)

    def test_11_removed_account_loses_admin_access(self):
        self._enter_site()
        user = self._sign_in_admin()
        self.assertEqual(self._post('/api/transports', RIDE).status_code, 201)
        with self.flask_app.app_context():
            self.assertEqual(self.flask_app.extensions['transport_dashboard']['store'].delete('identities', user['id']), 1)
        self.assertEqual(self._post('/api/transports', RIDE).status_code, 401)
        self.assertEqual(self.app.get('/admin').status_code, 302)

    def test_12_announcement_times_come_from_the_server(self):
        self._enter_site()
        self._sign_in_admin()
        response = self._post('/api/announcements', {'title': 'Backdated', 'content': 'x', 'date': '2024-01-01',
                                                     'timestamp': '1999-01-01T00:00:00Z'})
        self.assertEqual(response.status_code, 201)
        created = json.loads(response.data)
        self.assertFalse(created['timestamp'].startswith('1999'))
        response = self._put(f"/api/announcements/{created['id']}", {'title': 'Backdated', 'content': 'y'})
        self.assertEqual(json.loads(response.data)['date'], '2024-01-01')


if __name__ == '__main__':
    unittest.main()
