import logging
from django.db import transaction
from rest_framework import permissions
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class IsContractor(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_contractor


class IsCustomerOrAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_customer or request.user.is_admin


def error_response(exc):
    """Render a MarketplaceError the way every view reports failures."""
    return Response({"error": exc.message, "code": exc.code}, status=exc.status_code)


def run_after_commit(func, *args, description=None, **kwargs):
    """Schedule a best-effort side effect once the current transaction commits.

    Failures are logged and swallowed so they can never undo or block the
    write that triggered them. Outside a transaction the call runs at once.
    """
    label = description or getattr(func, '__qualname__', repr(func))

    def _run():
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Side effect '{label}' failed: {str(e)}", exc_info=True)

    transaction.on_commit(_run)
