"""
Request middleware: API key authentication and acting-user identity.

All endpoints except /health/ require a valid API key
in the X-API-KEY header.
"""

import logging

from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)

# Paths that don't require authentication
EXEMPT_PATHS = (
    '/health/',
    '/health',
    '/admin/',
)

ACTOR_HEADER = 'HTTP_X_ACTOR_ID'


class APIKeyMiddleware:
    """
    Middleware that checks for a valid API key in the X-API-KEY header.

    If API_KEYS is empty in settings (e.g., during testing), the middleware
    is effectively disabled and all requests pass through.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Skip auth for exempt paths
        if any(request.path.startswith(path) for path in EXEMPT_PATHS):
            return self.get_response(request)

        # If no API keys configured, skip auth (dev/test mode)
        api_keys = getattr(settings, 'API_KEYS', [])
        if not api_keys:
            return self.get_response(request)

        provided_key = request.META.get('HTTP_X_API_KEY', '')

        if not provided_key:
            logger.warning(
                "Request to %s rejected: missing API key",
                request.path,
            )
            return JsonResponse(
                {
                    'error': True,
                    'status_code': 401,
                    'detail': 'Authentication required. Provide X-API-KEY header.',
                },
                status=401,
            )

        if provided_key not in api_keys:
            logger.warning(
                "Request to %s rejected: invalid API key",
                request.path,
            )
            return JsonResponse(
                {
                    'error': True,
                    'status_code': 403,
                    'detail': 'Invalid API key.',
                },
                status=403,
            )

        return self.get_response(request)


class ActorMiddleware:
    """
    Attach the acting user's id to the request as ``request.actor_id``.

    The id comes from the X-ACTOR-ID header, falling back to the
    authenticated Django user. It is opaque to the ledger and only ends
    up in audit columns such as ``approved_by``.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.actor_id = self.resolve_actor(request)
        return self.get_response(request)

    @staticmethod
    def resolve_actor(request):
        actor = request.META.get(ACTOR_HEADER, '').strip()
        if actor:
            return actor

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            return str(user.pk)

        return None
