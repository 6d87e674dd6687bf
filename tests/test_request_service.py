"""
Tests for the access request workflow (create, approve, deny).
"""
import pytest

from minidrive.extensions import db
from minidrive.models import (
    AccessRequest, PermissionGrant, PermissionType, REQUEST_STATUS_TRANSITIONS, RequestStatus,
)
from minidrive.services.exceptions import AccessDenied, Conflict, NotFound, ValidationFailed
from minidrive.services.request_service import AccessRequestService
from tests.conftest import grant


@pytest.fixture
def pending_request(sample_file, other_user):
    return AccessRequestService.create_request(sample_file.id, other_user, 'edit', message='Need to fix typos')


# =============================================================================
# Create
# =============================================================================

class TestCreateRequest:
    """Opening a request."""

    def test_creates_pending_request_with_file_owner(self, sample_file, owner_user, other_user):
        access_request = AccessRequestService.create_request(sample_file.id, other_user, 'view')
        assert access_request.status == RequestStatus.PENDING
        assert access_request.owner_id == owner_user.id
        assert access_request.requested_permission == PermissionType.VIEW
        assert access_request.responded_at is None

    def test_unknown_file(self, other_user):
        with pytest.raises(NotFound):
            AccessRequestService.create_request(9999, other_user, 'view')

    def test_owner_cannot_request(self, sample_file, owner_user):
        with pytest.raises(Conflict) as exc_info:
            AccessRequestService.create_request(sample_file.id, owner_user, 'view')
        assert exc_info.value.code == 'owner_request'

    def test_invalid_permission(self, sample_file, other_user):
        with pytest.raises(ValidationFailed):
            AccessRequestService.create_request(sample_file.id, other_user, 'superuser')

    def test_message_too_long(self, sample_file, other_user):
        with pytest.raises(ValidationFailed):
            AccessRequestService.create_request(sample_file.id, other_user, 'view', message='x' * 1001)

    def test_pending_request_blocks_duplicate(self, pending_request, sample_file, other_user):
        with pytest.raises(Conflict) as exc_info:
            AccessRequestService.create_request(sample_file.id, other_user, 'view')
        assert exc_info.value.code == 'request_pending'
        assert exc_info.value.details == {'request_id': pending_request.id}

    def test_concurrent_duplicate_rejected_by_database(self, pending_request, sample_file, other_user, monkeypatch):
        """Two workers pass the pending check at once; the unique index rejects the second insert."""
        real_lookup = AccessRequestService._pending_request
        lookups = []

        def lookup_misses_first_time(file_id, requester_id):
            lookups.append(file_id)
            if len(lookups) == 1:
                return None
            return real_lookup(file_id, requester_id)

        monkeypatch.setattr(AccessRequestService, '_pending_request', staticmethod(lookup_misses_first_time))

        with pytest.raises(Conflict) as exc_info:
            AccessRequestService.create_request(sample_file.id, other_user, 'view')
        assert exc_info.value.code == 'request_pending'
        assert exc_info.value.details == {'request_id': pending_request.id}
        assert AccessRequest.query.filter_by(
            file_id=sample_file.id,
            requested_by_id=other_user.id,
            status=RequestStatus.PENDING
        ).count() == 1

    def test_already_granted_at_or_above(self, sample_file, other_user):
        grant(sample_file, other_user, 'edit')
        with pytest.raises(Conflict) as exc_info:
            AccessRequestService.create_request(sample_file.id, other_user, 'view')
        assert exc_info.value.code == 'already_granted'

    def test_upgrade_request_allowed(self, sample_file, other_user):
        grant(sample_file, other_user, 'view')
        access_request = AccessRequestService.create_request(sample_file.id, other_user, 'admin')
        assert access_request.is_pending

    def test_denied_user_may_ask_again(self, pending_request, sample_file, owner_user, other_user):
        AccessRequestService.deny_request(pending_request.id, owner_user)
        again = AccessRequestService.create_request(sample_file.id, other_user, 'view')
        assert again.id != pending_request.id
        assert again.is_pending


# =============================================================================
# Approve
# =============================================================================

class TestApproveRequest:
    """Approval flips the status and writes the grant in one transaction."""

    def test_approve_grants_requested_level(self, pending_request, sample_file, owner_user, other_user):
        approved = AccessRequestService.approve_request(pending_request.id, owner_user)
        assert approved.status == RequestStatus.APPROVED
        assert approved.responded_by_id == owner_user.id
        assert approved.responded_at is not None

        permission = PermissionGrant.query.filter_by(file_id=sample_file.id, user_id=other_user.id).one()
        assert permission.permission_type == PermissionType.EDIT
        assert permission.granted_by_id == owner_user.id

    def test_approve_with_different_level(self, pending_request, sample_file, owner_user, other_user):
        AccessRequestService.approve_request(pending_request.id, owner_user, granted_permission='view')
        permission = PermissionGrant.query.filter_by(file_id=sample_file.id, user_id=other_user.id).one()
        assert permission.permission_type == PermissionType.VIEW

    def test_approve_updates_existing_grant(self, sample_file, owner_user, other_user):
        grant(sample_file, other_user, 'view')
        upgrade = AccessRequestService.create_request(sample_file.id, other_user, 'admin')
        AccessRequestService.approve_request(upgrade.id, owner_user)

        grants = PermissionGrant.query.filter_by(file_id=sample_file.id, user_id=other_user.id).all()
        assert len(grants) == 1
        assert grants[0].permission_type == PermissionType.ADMIN

    def test_system_admin_can_approve(self, pending_request, admin_user):
        approved = AccessRequestService.approve_request(pending_request.id, admin_user)
        assert approved.responded_by_id == admin_user.id

    def test_non_owner_cannot_approve(self, pending_request, third_user):
        with pytest.raises(AccessDenied):
            AccessRequestService.approve_request(pending_request.id, third_user)
        assert db.session.get(AccessRequest, pending_request.id).is_pending

    def test_requester_cannot_self_approve(self, pending_request, other_user):
        with pytest.raises(AccessDenied):
            AccessRequestService.approve_request(pending_request.id, other_user)

    def test_unknown_request(self, owner_user):
        with pytest.raises(NotFound):
            AccessRequestService.approve_request(424242, owner_user)

    def test_second_approve_rejected(self, pending_request, owner_user):
        AccessRequestService.approve_request(pending_request.id, owner_user)
        with pytest.raises(Conflict) as exc_info:
            AccessRequestService.approve_request(pending_request.id, owner_user)
        assert exc_info.value.code == 'request_not_pending'

    def test_approve_after_deny_writes_no_grant(self, pending_request, sample_file, owner_user, admin_user, other_user):
        AccessRequestService.deny_request(pending_request.id, owner_user)
        with pytest.raises(Conflict):
            AccessRequestService.approve_request(pending_request.id, admin_user)

        assert PermissionGrant.query.filter_by(file_id=sample_file.id, user_id=other_user.id).count() == 0
        assert db.session.get(AccessRequest, pending_request.id).status == RequestStatus.DENIED

    def test_stale_object_loses_race(self, pending_request, owner_user, admin_user):
        """A response computed from a stale 'pending' row is rejected by the conditional update."""
        AccessRequestService.deny_request(pending_request.id, admin_user)
        stale = db.session.get(AccessRequest, pending_request.id)
        stale.status = RequestStatus.PENDING  # in-memory only, never flushed
        with db.session.no_autoflush, pytest.raises(Conflict):
            AccessRequestService._claim(stale, RequestStatus.APPROVED, owner_user)
        assert db.session.get(AccessRequest, pending_request.id).status == RequestStatus.DENIED

    def test_conditional_update_follows_transition_table(self, pending_request, owner_user, monkeypatch):
        """Allowing denied -> approved in the table is enough for approve to accept a denied request."""
        AccessRequestService.deny_request(pending_request.id, owner_user)
        monkeypatch.setitem(REQUEST_STATUS_TRANSITIONS, RequestStatus.DENIED, [RequestStatus.APPROVED])

        approved = AccessRequestService.approve_request(pending_request.id, owner_user)
        assert approved.status == RequestStatus.APPROVED


# =============================================================================
# Deny
# =============================================================================

class TestDenyRequest:
    """Deny has no grant side effect."""

    def test_deny(self, pending_request, sample_file, owner_user, other_user):
        denied = AccessRequestService.deny_request(pending_request.id, owner_user)
        assert denied.status == RequestStatus.DENIED
        assert denied.responded_by_id == owner_user.id
        assert PermissionGrant.query.filter_by(file_id=sample_file.id, user_id=other_user.id).count() == 0

    def test_deny_after_approve_rejected(self, pending_request, owner_user):
        AccessRequestService.approve_request(pending_request.id, owner_user)
        with pytest.raises(Conflict) as exc_info:
            AccessRequestService.deny_request(pending_request.id, owner_user)
        assert exc_info.value.details == {'status': 'approved'}

    def test_non_owner_cannot_deny(self, pending_request, third_user):
        with pytest.raises(AccessDenied):
            AccessRequestService.deny_request(pending_request.id, third_user)


# =============================================================================
# Listing
# =============================================================================

class TestListRequests:
    """Outgoing, incoming and admin listings."""

    def test_outgoing_and_incoming(self, pending_request, owner_user, other_user, third_user):
        assert AccessRequestService.outgoing_query(other_user).all() == [pending_request]
        assert AccessRequestService.incoming_query(owner_user).all() == [pending_request]
        assert AccessRequestService.outgoing_query(third_user).all() == []
        assert AccessRequestService.incoming_query(other_user).all() == []

    def test_status_filter(self, pending_request, owner_user):
        assert AccessRequestService.incoming_query(owner_user, 'approved').count() == 0
        assert AccessRequestService.incoming_query(owner_user, 'pending').count() == 1
        assert AccessRequestService.all_query('pending').count() == 1

    def test_invalid_status_filter(self, owner_user):
        with pytest.raises(ValidationFailed):
            AccessRequestService.incoming_query(owner_user, 'maybe')
