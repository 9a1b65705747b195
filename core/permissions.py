"""
DRF permission classes backed by core.access.
"""
from rest_framework.permissions import SAFE_METHODS, BasePermission

from .access import can_mutate, resolve_role, session_from_request


class CanMutateInventory(BasePermission):
    """
    Read access for any authenticated user, write access for storekeepers.

    The service layer repeats the check.
    """
    message = 'Only storekeepers may modify inventory.'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return can_mutate(resolve_role(session_from_request(request)))
