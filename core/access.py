"""
Access control for ledger mutations.

The acting role is never read from global state: every operation receives an
explicit Session and the capability gate is a pure function of it.

Roles:
    - storekeeper: may create, update, delete, issue and restock
    - supervisor: read-only; the default for any missing or unknown claim
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from django.db import models

from .exceptions import AccessDeniedError

logger = logging.getLogger(__name__)


class Role(models.TextChoices):
    STOREKEEPER = 'storekeeper', 'Storekeeper'
    SUPERVISOR = 'supervisor', 'Supervisor'


@dataclass(frozen=True)
class Session:
    """Role claim and actor name supplied by the authentication layer."""
    role: Optional[str] = None
    actor: str = 'anonymous'


def resolve_role(session: Any) -> Role:
    """
    Resolve the acting role from a session value.

    Accepts a Session (or any object with a ``role`` attribute), a mapping
    with a ``"role"`` key, or None. Only the exact claim ``"storekeeper"``
    grants the storekeeper role.
    """
    if session is None:
        return Role.SUPERVISOR
    if isinstance(session, Mapping):
        claim = session.get('role')
    else:
        claim = getattr(session, 'role', None)
    if claim == Role.STOREKEEPER.value:
        return Role.STOREKEEPER
    return Role.SUPERVISOR


def can_mutate(role: Role) -> bool:
    return role == Role.STOREKEEPER


def require_mutate(session: Any, action: str) -> Role:
    """
    Gate a mutating operation.

    Raises:
        AccessDeniedError: If the resolved role is not allowed to mutate
    """
    role = resolve_role(session)
    if not can_mutate(role):
        actor = getattr(session, 'actor', None) or 'anonymous'
        logger.warning(f"Denied {action} for {actor} (role: {role.value})")
        raise AccessDeniedError(
            f"Role '{role.value}' is not permitted to {action}"
        )
    return role


def session_from_request(request) -> Session:
    """
    Build a Session from an authenticated Django request.

    The role claim is the name of the user's auth group; a user in neither
    role group carries no claim and resolves to supervisor.
    """
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return Session()

    group_names = set(user.groups.values_list('name', flat=True))
    if Role.STOREKEEPER.value in group_names:
        claim = Role.STOREKEEPER.value
    elif Role.SUPERVISOR.value in group_names:
        claim = Role.SUPERVISOR.value
    else:
        claim = None
    return Session(role=claim, actor=user.get_username())
