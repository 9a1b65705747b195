"""
Tests for access control.

Test Cases:
1. Role resolution from sessions, mappings and missing claims
2. Capability gate and denial
3. Session built from a request user's auth groups
4. Error kinds mapped to HTTP status codes
"""
from django.contrib.auth.models import AnonymousUser, Group, User
from django.test import RequestFactory, TestCase

from core.access import (
    Role,
    Session,
    can_mutate,
    require_mutate,
    resolve_role,
    session_from_request,
)
from core.exceptions import (
    AccessDeniedError,
    InsufficientStockError,
    LedgerStateError,
    LedgerValidationError,
    NotFoundError,
    PersistenceError,
)
from core.permissions import CanMutateInventory
from core.views import ledger_error_response


class ResolveRoleTestCase(TestCase):
    """Role resolution defaults to least privilege."""

    def test_storekeeper_claim(self):
        self.assertEqual(resolve_role(Session(role='storekeeper')), Role.STOREKEEPER)

    def test_supervisor_claim(self):
        self.assertEqual(resolve_role(Session(role='supervisor')), Role.SUPERVISOR)

    def test_missing_claim_is_supervisor(self):
        self.assertEqual(resolve_role(Session()), Role.SUPERVISOR)
        self.assertEqual(resolve_role(None), Role.SUPERVISOR)
        self.assertEqual(resolve_role({}), Role.SUPERVISOR)

    def test_unknown_claim_is_supervisor(self):
        for claim in ['admin', 'Storekeeper', 'storekeeper ', '', 1]:
            self.assertEqual(resolve_role({'role': claim}), Role.SUPERVISOR, claim)

    def test_mapping_session(self):
        self.assertEqual(resolve_role({'role': 'storekeeper'}), Role.STOREKEEPER)


class CapabilityGateTestCase(TestCase):

    def test_only_storekeeper_can_mutate(self):
        self.assertTrue(can_mutate(Role.STOREKEEPER))
        self.assertFalse(can_mutate(Role.SUPERVISOR))

    def test_require_mutate_denies_supervisor(self):
        """
        Given: A supervisor session
        When: A mutating action is gated
        Then: AccessDeniedError, which is also a builtin PermissionError
        """
        with self.assertRaises(PermissionError) as context:
            require_mutate(Session(role='supervisor', actor='sam'), 'add items')

        self.assertIsInstance(context.exception, AccessDeniedError)
        self.assertEqual(context.exception.kind, 'permission')
        self.assertIn('add items', str(context.exception))

    def test_require_mutate_allows_storekeeper(self):
        role = require_mutate(Session(role='storekeeper'), 'add items')
        self.assertEqual(role, Role.STOREKEEPER)


class SessionFromRequestTestCase(TestCase):
    """The role claim comes from the user's auth group."""

    def setUp(self):
        self.factory = RequestFactory()
        self.storekeepers = Group.objects.create(name='storekeeper')
        self.supervisors = Group.objects.create(name='supervisor')

    def _request_for(self, user):
        request = self.factory.get('/')
        request.user = user
        return request

    def test_storekeeper_group(self):
        user = User.objects.create_user('keeper', password='pass12345')
        user.groups.add(self.storekeepers)

        session = session_from_request(self._request_for(user))

        self.assertEqual(session.role, 'storekeeper')
        self.assertEqual(session.actor, 'keeper')

    def test_supervisor_group(self):
        user = User.objects.create_user('boss', password='pass12345')
        user.groups.add(self.supervisors)

        session = session_from_request(self._request_for(user))

        self.assertEqual(resolve_role(session), Role.SUPERVISOR)

    def test_no_group_has_no_claim(self):
        user = User.objects.create_user('nobody', password='pass12345')

        session = session_from_request(self._request_for(user))

        self.assertIsNone(session.role)
        self.assertEqual(resolve_role(session), Role.SUPERVISOR)

    def test_anonymous_user(self):
        session = session_from_request(self._request_for(AnonymousUser()))
        self.assertEqual(resolve_role(session), Role.SUPERVISOR)

    def test_permission_class(self):
        keeper = User.objects.create_user('keeper', password='pass12345')
        keeper.groups.add(self.storekeepers)
        boss = User.objects.create_user('boss', password='pass12345')
        boss.groups.add(self.supervisors)
        permission = CanMutateInventory()

        post_as_boss = self.factory.post('/')
        post_as_boss.user = boss
        get_as_boss = self.factory.get('/')
        get_as_boss.user = boss
        post_as_keeper = self.factory.post('/')
        post_as_keeper.user = keeper

        self.assertFalse(permission.has_permission(post_as_boss, None))
        self.assertTrue(permission.has_permission(get_as_boss, None))
        self.assertTrue(permission.has_permission(post_as_keeper, None))


class LedgerErrorResponseTestCase(TestCase):
    """Each error kind maps to a fixed HTTP status."""

    def test_status_codes(self):
        cases = [
            (AccessDeniedError('denied'), 403),
            (NotFoundError('Item', 7), 404),
            (LedgerValidationError('bad'), 400),
            (InsufficientStockError(7, 5, 2), 409),
            (LedgerStateError('resubmitted'), 409),
            (PersistenceError('down'), 503),
        ]
        for exc, status_code in cases:
            response = ledger_error_response(exc)
            self.assertEqual(response.status_code, status_code, exc.kind)
            self.assertEqual(response.data['error'], exc.kind)

    def test_illegal_transition_is_conflict(self):
        response = ledger_error_response(
            LedgerStateError("Cannot move issuance request from committed to validating")
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {
            'error': 'state',
            'detail': 'Cannot move issuance request from committed to validating',
        })
