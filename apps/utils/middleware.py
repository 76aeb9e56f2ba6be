import logging
import time
import uuid
from django.utils.deprecation import MiddlewareMixin
from django.http import JsonResponse

logger = logging.getLogger("apps.requests")


class RequestLogMiddleware(MiddlewareMixin):
    """
    One log line per request: method, path, status, user and duration.
    """
    def process_request(self, request):
        request._started_at = time.monotonic()
        request.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    def process_response(self, request, response):
        started = getattr(request, "_started_at", None)
        duration_ms = (time.monotonic() - started) * 1000 if started else 0.0
        user = getattr(request, "user", None)
        user_id = user.pk if user is not None and user.is_authenticated else None

        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            extra={"user_id": user_id, "request_id": getattr(request, "request_id", "")},
        )
        if hasattr(request, "request_id"):
            response["X-Request-ID"] = request.request_id
        return response


class GlobalExceptionMiddleware(MiddlewareMixin):
    """
    Last line of defense for non-DRF views.
    """
    def process_exception(self, request, exception):
        logger.exception(f"Unhandled Middleware Exception: {str(exception)}")
        if request.path.startswith('/api/'):
            return JsonResponse(
                {"error": "Internal System Error"},
                status=500
            )
        return None # Let Django's default 500 handler work for HTML
