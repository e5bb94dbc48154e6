"""
Tests for request middleware: API key authentication and actor identity.
"""

from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from apps.core.middleware import ActorMiddleware


@override_settings(API_KEYS=['test-api-key-123', 'another-key-456'])
class APIKeyAuthTests(TestCase):
    """Test X-API-KEY header authentication."""

    def setUp(self):
        self.client = APIClient()
        self.payload = {'name': 'Test Org', 'code': 'TST'}

    def test_missing_api_key_returns_401(self):
        """Request without X-API-KEY returns 401."""
        response = self.client.post('/api/organizations', self.payload, format='json')
        self.assertEqual(response.status_code, 401)
        data = response.json()
        self.assertTrue(data['error'])
        self.assertIn('Authentication required', data['detail'])

    def test_invalid_api_key_returns_403(self):
        """Request with wrong X-API-KEY returns 403."""
        response = self.client.post(
            '/api/organizations',
            self.payload,
            format='json',
            HTTP_X_API_KEY='wrong-key',
        )
        self.assertEqual(response.status_code, 403)
        data = response.json()
        self.assertIn('Invalid API key', data['detail'])

    def test_valid_api_key_passes(self):
        """Request with valid X-API-KEY proceeds normally."""
        response = self.client.post(
            '/api/organizations',
            self.payload,
            format='json',
            HTTP_X_API_KEY='test-api-key-123',
        )
        self.assertEqual(response.status_code, 201)

    def test_second_valid_key_works(self):
        """Multiple API keys are supported."""
        response = self.client.post(
            '/api/organizations',
            {'name': 'Second Org', 'code': 'SEC'},
            format='json',
            HTTP_X_API_KEY='another-key-456',
        )
        self.assertEqual(response.status_code, 201)

    def test_health_endpoint_exempt(self):
        """GET /health/ should work without API key."""
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'healthy')

    def test_all_api_endpoints_require_key(self):
        """All /api/ endpoints should require API key."""
        endpoints = [
            ('post', '/api/organizations'),
            ('post', '/api/employees'),
            ('get', '/api/loans'),
            ('post', '/api/loans'),
            ('get', '/api/loans/1'),
            ('post', '/api/loans/1/approve'),
            ('get', '/api/loans/1/schedule'),
            ('post', '/api/loans/1/repayments'),
            ('patch', '/api/deficits/1'),
            ('post', '/api/import-loans'),
        ]
        for method, url in endpoints:
            response = getattr(self.client, method)(url, format='json')
            self.assertEqual(
                response.status_code, 401,
                f"{method.upper()} {url} should require API key",
            )


@override_settings(API_KEYS=[])
class APIKeyDisabledTests(TestCase):
    """When API_KEYS is empty, middleware should be disabled."""

    def setUp(self):
        self.client = APIClient()

    def test_empty_api_keys_allows_requests(self):
        """With no API_KEYS configured, all requests pass through."""
        response = self.client.post(
            '/api/organizations', {'name': 'Open Org', 'code': 'OPN'}, format='json',
        )
        self.assertEqual(response.status_code, 201)


class ActorMiddlewareTests(SimpleTestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def test_header_sets_actor(self):
        request = self.factory.get('/api/loans', HTTP_X_ACTOR_ID=' officer-9 ')
        request.user = AnonymousUser()
        self.assertEqual(ActorMiddleware.resolve_actor(request), 'officer-9')

    def test_anonymous_without_header(self):
        request = self.factory.get('/api/loans')
        request.user = AnonymousUser()
        self.assertIsNone(ActorMiddleware.resolve_actor(request))

    def test_middleware_attaches_actor(self):
        seen = {}

        def get_response(request):
            seen['actor_id'] = request.actor_id
            return 'ok'

        request = self.factory.get('/api/loans', HTTP_X_ACTOR_ID='clerk-3')
        self.assertEqual(ActorMiddleware(get_response)(request), 'ok')
        self.assertEqual(seen['actor_id'], 'clerk-3')
