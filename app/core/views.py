"""
Core views providing infrastructure endpoints.

These views are not part of the billing domain; they exist so load
balancers and orchestrators can tell whether the process can serve.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)

HEALTH_CACHE_KEY = "health_check"


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        return False
    return True


def _cache_ok() -> bool:
    # Cache backs the customer creation lock, so it is reported but a
    # failure only degrades the service.
    try:
        cache.set(HEALTH_CACHE_KEY, "ok", timeout=1)
        return cache.get(HEALTH_CACHE_KEY) == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        return False


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with component health:
        - status: "healthy", "degraded" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: Database reachable (cache may be degraded)
        503: Database unreachable
    """
    database = _database_ok()
    cache_connected = _cache_ok()

    if not database:
        status = "unhealthy"
    elif not cache_connected:
        status = "degraded"
    else:
        status = "healthy"

    return JsonResponse(
        {
            "status": status,
            "database": "connected" if database else "disconnected",
            "cache": "connected" if cache_connected else "disconnected",
        },
        status=200 if database else 503,
    )
